"""CLI entrypoint for serving the custodian_portal HTTP API."""

from __future__ import annotations

import argparse
import os

import uvicorn

from custodian_portal.adapters.observability import configure_runtime_logging


def build_arg_parser() -> argparse.ArgumentParser:
    """Create CLI args for the API server process."""
    parser = argparse.ArgumentParser(description="Serve the custodian_portal API.")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--reload", action="store_true")
    parser.add_argument(
        "--db-path",
        default="",
        help="SQLite path for local persistence (default: work/local/custodian.db).",
    )
    parser.add_argument(
        "--log-level",
        default="",
        choices=["", "DEBUG", "INFO", "WARNING", "ERROR"],
        help="Overrides CUSTODIAN_LOG_LEVEL for this process.",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    """Parse CLI flags and start uvicorn with the app module path."""
    parser = build_arg_parser()
    parsed = parser.parse_args(argv)
    if parsed.log_level:
        os.environ["CUSTODIAN_LOG_LEVEL"] = str(parsed.log_level)
    configure_runtime_logging()
    db_path = str(parsed.db_path).strip()
    if db_path:
        os.environ["CUSTODIAN_DB_PATH"] = db_path
    uvicorn.run(
        "custodian_portal.api.app:app",
        host=str(parsed.host),
        port=int(parsed.port),
        reload=bool(parsed.reload),
    )


if __name__ == "__main__":
    main()
