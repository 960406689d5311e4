"""CLI for creating, inspecting, and restoring portal backups."""

from __future__ import annotations

import argparse
import json
from dataclasses import asdict
from pathlib import Path

from custodian_portal.adapters.notifications import create_notifier
from custodian_portal.adapters.observability import configure_runtime_logging
from custodian_portal.adapters.storage_factory import create_backup_orchestrator, create_persistence
from custodian_portal.core.activity_log import ActivityLog
from custodian_portal.core.backup import BackupOrchestrator, RestoreOptions
from custodian_portal.core.errors import NotFoundError


def build_arg_parser() -> argparse.ArgumentParser:
    """Define CLI flags for backup maintenance."""
    parser = argparse.ArgumentParser(description="Manage custodian_portal backups.")
    parser.add_argument(
        "--db-path",
        default="",
        help="SQLite path for local persistence (default: work/local/custodian.db).",
    )
    parser.add_argument("--mirror-dir", default="", help="Directory mirror for backup payloads.")
    commands = parser.add_subparsers(dest="command", required=True)

    create = commands.add_parser("create", help="Create a backup now.")
    create.add_argument("--description", default=None)
    create.add_argument("--created-by", default="CLI")

    listing = commands.add_parser("list", help="List backups, newest first.")
    listing.add_argument("--all", action="store_true", help="Include failed and corrupted backups.")

    verify = commands.add_parser("verify", help="Check a backup's checksum and contents.")
    verify.add_argument("backup_id")

    restore = commands.add_parser("restore", help="Restore data from a backup.")
    restore.add_argument("backup_id")
    restore.add_argument("--data-type", action="append", dest="data_types", default=None)
    restore.add_argument("--date-start", default=None)
    restore.add_argument("--date-end", default=None)
    restore.add_argument("--dry-run", action="store_true")
    restore.add_argument("--safety-backup", action="store_true")

    commands.add_parser("cleanup", help="Delete backups older than the retention window.")
    return parser


def _build_orchestrator(parsed: argparse.Namespace) -> BackupOrchestrator:
    db_path = str(parsed.db_path).strip()
    mirror_dir = str(parsed.mirror_dir).strip()
    persistence = create_persistence(db_path=Path(db_path) if db_path else None)
    return create_backup_orchestrator(
        persistence,
        ActivityLog(persistence),
        notifier=create_notifier(),
        mirror_dir=Path(mirror_dir) if mirror_dir else None,
    )


def run(parsed: argparse.Namespace, orchestrator: BackupOrchestrator) -> dict[str, object]:
    """Execute one subcommand and return its JSON-ready result."""
    command = str(parsed.command)
    if command == "create":
        outcome = orchestrator.create_backup(parsed.description, str(parsed.created_by))
        return asdict(outcome)
    if command == "list":
        return {
            "backups": [
                metadata.to_document() for metadata in orchestrator.list_history(bool(parsed.all))
            ],
            "statistics": orchestrator.storage_statistics(),
        }
    if command == "verify":
        return asdict(orchestrator.verify(str(parsed.backup_id)))
    if command == "restore":
        report = orchestrator.restore(
            RestoreOptions(
                backup_id=str(parsed.backup_id),
                data_types=tuple(parsed.data_types) if parsed.data_types else None,
                date_start=parsed.date_start,
                date_end=parsed.date_end,
                create_safety_backup_first=bool(parsed.safety_backup),
                dry_run=bool(parsed.dry_run),
            )
        )
        return {**asdict(report), "total_items": report.total_items}
    return {"removed": orchestrator.cleanup_old_backups()}


def main(argv: list[str] | None = None) -> None:
    """Run one backup subcommand and print its result as JSON."""
    configure_runtime_logging()
    parser = build_arg_parser()
    parsed = parser.parse_args(argv)
    orchestrator = _build_orchestrator(parsed)
    try:
        result = run(parsed, orchestrator)
    except NotFoundError as exc:
        raise SystemExit(str(exc)) from exc
    print(json.dumps(result, indent=2, ensure_ascii=False))


if __name__ == "__main__":
    main()
