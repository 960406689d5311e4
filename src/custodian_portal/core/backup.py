"""Backup creation, verification, restore, and retention for portal data."""

from __future__ import annotations

import hashlib
import json
import logging
import math
from collections.abc import Mapping
from dataclasses import asdict, dataclass, field, replace
from datetime import UTC, datetime, timedelta
from typing import Any, Literal

from custodian_portal.core.activity_log import ACTIVITIES_COLLECTION, ActivityLog, new_record_id
from custodian_portal.core.alerts import safe_notify
from custodian_portal.core.backup_codec import FernetCodec, codec_for
from custodian_portal.core.errors import BackupIntegrityError, NotFoundError, ValidationError
from custodian_portal.core.metrics import METRICS_COLLECTION
from custodian_portal.core.persistence import PersistenceAdapter
from custodian_portal.core.search import (
    BRAND_TESTS_COLLECTION,
    MEDIA_COLLECTION,
    SAVED_SEARCHES_COLLECTION,
    STORIES_COLLECTION,
)
from custodian_portal.core.validation import parse_timestamp, utc_now_iso
from custodian_portal.domain.models import WORKSPACE_OWNER, BackupMetadata, SystemAlert
from custodian_portal.domain.ports import BackupMirror, Notifier

BACKUP_HISTORY_COLLECTION = "backupHistory"
BACKUP_PAYLOADS_COLLECTION = "backupPayloads"
SETTINGS_COLLECTION = "settings"
BACKUP_SETTINGS_KEY = "backup"
PAYLOAD_VERSION = "1.0"

OWNER_SCOPED_TYPES: dict[str, str] = {
    "metrics": METRICS_COLLECTION,
    "activities": ACTIVITIES_COLLECTION,
    "savedSearches": SAVED_SEARCHES_COLLECTION,
}
WORKSPACE_TYPES: dict[str, str] = {
    "content": STORIES_COLLECTION,
    "media": MEDIA_COLLECTION,
    "brandTests": BRAND_TESTS_COLLECTION,
}
DATA_TYPES = (*OWNER_SCOPED_TYPES, *WORKSPACE_TYPES, "settings")

Frequency = Literal["daily", "weekly", "monthly"]
FREQUENCY_SECONDS: dict[str, int] = {
    "daily": 24 * 60 * 60,
    "weekly": 7 * 24 * 60 * 60,
    "monthly": 30 * 24 * 60 * 60,
}
RestoreStatus = Literal["success", "partial", "failed"]

logger = logging.getLogger(__name__)


def format_file_size(size: int) -> str:
    """Human readable byte size, e.g. ``1.5 KB``."""
    units = ("Bytes", "KB", "MB", "GB")
    if size <= 0:
        return "0 Bytes"
    exponent = min(int(math.log(size, 1024)), len(units) - 1)
    value = round(size / 1024**exponent, 2)
    return f"{value:g} {units[exponent]}"


def payload_checksum(payload: str) -> str:
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class BackupConfiguration:
    """Persisted backup policy; the encryption key itself is never stored."""

    enabled: bool = True
    frequency: Frequency = "daily"
    retention_days: int = 30
    included_data_types: tuple[str, ...] = DATA_TYPES
    encryption_enabled: bool = True
    notify_on_success: bool = True
    notify_on_failure: bool = True

    def validate(self) -> None:
        errors: list[str] = []
        if self.frequency not in FREQUENCY_SECONDS:
            errors.append(f"frequency must be one of {', '.join(FREQUENCY_SECONDS)}")
        if self.retention_days <= 0:
            errors.append("retention_days must be positive")
        unknown = [t for t in self.included_data_types if t not in DATA_TYPES]
        if unknown:
            errors.append(f"unknown data types: {', '.join(unknown)}")
        if not self.included_data_types:
            errors.append("at least one data type must be included")
        if errors:
            raise ValidationError(errors)

    def to_document(self) -> dict[str, object]:
        document = asdict(self)
        document["included_data_types"] = list(self.included_data_types)
        return document

    @classmethod
    def from_document(cls, payload: Mapping[str, object]) -> BackupConfiguration:
        defaults = cls()
        types = payload.get("included_data_types")
        return cls(
            enabled=bool(payload.get("enabled", defaults.enabled)),
            frequency=str(payload.get("frequency", defaults.frequency)),  # type: ignore[arg-type]
            retention_days=int(payload.get("retention_days", defaults.retention_days)),
            included_data_types=(
                tuple(str(item) for item in types)
                if isinstance(types, list)
                else defaults.included_data_types
            ),
            encryption_enabled=bool(
                payload.get("encryption_enabled", defaults.encryption_enabled)
            ),
            notify_on_success=bool(payload.get("notify_on_success", defaults.notify_on_success)),
            notify_on_failure=bool(payload.get("notify_on_failure", defaults.notify_on_failure)),
        )


@dataclass(frozen=True)
class RestoreOptions:
    backup_id: str
    data_types: tuple[str, ...] | None = None
    date_start: str | None = None
    date_end: str | None = None
    validate_first: bool = True
    create_safety_backup_first: bool = False
    dry_run: bool = False


@dataclass(frozen=True)
class DataTypeReport:
    data_type: str
    restored: int
    failed: int
    errors: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class RecoveryReport:
    backup_id: str
    started_at_utc: str
    finished_at_utc: str
    status: RestoreStatus
    items: list[DataTypeReport]
    successful_items: int
    failed_items: int
    warnings: list[str]
    errors: list[str]

    @property
    def total_items(self) -> int:
        return self.successful_items + self.failed_items


@dataclass(frozen=True)
class BackupOutcome:
    success: bool
    backup_id: str | None = None
    error: str | None = None


@dataclass(frozen=True)
class VerificationResult:
    valid: bool
    errors: list[str]


def _restore_status(successful: int, failed: int) -> RestoreStatus:
    """Derive the report status from item counts, not from data types.

    A data type restored with zero records adds nothing to `successful`, so a
    restore whose only failures are missing types ends as "failed" unless some
    other type actually brought records back.
    """
    if failed == 0:
        return "success"
    if successful > 0:
        return "partial"
    return "failed"


class BackupOrchestrator:
    """Snapshot portal collections into checksummed payloads and restore them.

    Payloads and their metadata live in the persistence adapter; an optional
    mirror receives a second copy of each payload.
    """

    def __init__(
        self,
        persistence: PersistenceAdapter,
        activity_log: ActivityLog,
        *,
        encryption_key: str | None = None,
        notifier: Notifier | None = None,
        mirror: BackupMirror | None = None,
        configuration: BackupConfiguration | None = None,
    ) -> None:
        self._persistence = persistence
        self._activity_log = activity_log
        self._encryption_key = encryption_key
        if encryption_key:
            try:
                FernetCodec(encryption_key)
            except ValidationError:
                logger.error("backup.invalid_encryption_key encrypted_backups=unreadable")
        self._notifier = notifier
        self._mirror = mirror
        if configuration is not None:
            configuration.validate()
        self._configuration_override = configuration

    @property
    def configuration(self) -> BackupConfiguration:
        if self._configuration_override is not None:
            return self._configuration_override
        stored = self._persistence.get(SETTINGS_COLLECTION, BACKUP_SETTINGS_KEY)
        if isinstance(stored, Mapping):
            return BackupConfiguration.from_document(stored)
        return BackupConfiguration()

    def update_configuration(self, **changes: Any) -> BackupConfiguration:
        unknown = sorted(set(changes) - set(BackupConfiguration.__dataclass_fields__))
        if unknown:
            raise ValidationError([f"unknown configuration fields: {', '.join(unknown)}"])
        if "included_data_types" in changes:
            changes["included_data_types"] = tuple(changes["included_data_types"])
        updated = replace(self.configuration, **changes)
        updated.validate()
        self._configuration_override = None
        self._persistence.save(SETTINGS_COLLECTION, updated.to_document(), BACKUP_SETTINGS_KEY)
        logger.info("backup.configuration_updated fields=%s", ",".join(sorted(changes)))
        return updated

    @property
    def encoding(self) -> str:
        if self._encryption_key:
            return "fernet"
        return "base64" if self.configuration.encryption_enabled else "none"

    def create_backup(
        self,
        description: str | None = None,
        created_by: str = "System",
        owner_id: str | None = None,
    ) -> BackupOutcome:
        """Snapshot every included data type; never raises."""
        configuration = self.configuration
        metadata = BackupMetadata(
            backup_id=new_record_id("backup"),
            timestamp_utc=utc_now_iso(),
            data_types=configuration.included_data_types,
            status="creating",
            created_by=created_by,
            encoding=self.encoding,
            version=PAYLOAD_VERSION,
            description=description,
        )
        try:
            self._put_metadata(metadata)
            snapshot = self._collect(metadata.data_types)
            serialized = json.dumps(
                {"version": PAYLOAD_VERSION, "data": snapshot}, ensure_ascii=False, sort_keys=True
            )
            payload = codec_for(metadata.encoding, self._encryption_key).encode(serialized)
            metadata = replace(
                metadata,
                size=len(payload.encode("utf-8")),
                checksum=payload_checksum(payload),
            )
            if not self._persistence.save(BACKUP_PAYLOADS_COLLECTION, payload, metadata.backup_id):
                raise BackupIntegrityError("Backup payload could not be stored")
            if self._mirror is not None:
                self._mirror.put(backup_id=metadata.backup_id, payload=payload)
            metadata = replace(metadata, status="completed")
            self._put_metadata(metadata)
        except Exception as exc:
            logger.exception("backup.create_failed id=%s", metadata.backup_id)
            self._put_metadata(replace(metadata, status="failed", error=str(exc)))
            if configuration.notify_on_failure:
                safe_notify(
                    self._notifier,
                    SystemAlert(
                        level="high",
                        title="Backup Failed",
                        component="Backup System",
                        description=f"Automated backup failed: {exc}",
                        action_required=True,
                    ),
                )
            return BackupOutcome(success=False, backup_id=metadata.backup_id, error=str(exc))

        if configuration.notify_on_success:
            safe_notify(
                self._notifier,
                SystemAlert(
                    level="low",
                    title="Backup Completed Successfully",
                    component="Backup System",
                    description=f"Backup {metadata.backup_id} completed successfully",
                ),
            )
        self._activity_log.log_system(
            f"Backup created successfully: {metadata.backup_id} "
            f"({format_file_size(metadata.size)})",
            owner_id,
        )
        logger.info(
            "backup.created id=%s size=%s encoding=%s",
            metadata.backup_id,
            metadata.size,
            metadata.encoding,
        )
        return BackupOutcome(success=True, backup_id=metadata.backup_id)

    def restore(self, options: RestoreOptions, owner_id: str | None = None) -> RecoveryReport:
        """Restore data types from a completed backup.

        A checksum mismatch aborts before any live collection is touched. Each
        data type is restored independently; one failing type does not stop
        the others.
        """
        started = utc_now_iso()
        metadata = self.get_metadata(options.backup_id)
        warnings: list[str] = []

        def failed(*errors: str) -> RecoveryReport:
            return RecoveryReport(
                backup_id=options.backup_id,
                started_at_utc=started,
                finished_at_utc=utc_now_iso(),
                status="failed",
                items=[],
                successful_items=0,
                failed_items=0,
                warnings=warnings,
                errors=list(errors),
            )

        if metadata.status != "completed":
            return failed(f"Backup {options.backup_id} is {metadata.status}, not completed")

        if options.create_safety_backup_first:
            safety = self.create_backup("Pre-restore safety backup", owner_id=owner_id)
            if not safety.success:
                warnings.append("Failed to create safety backup before restore")

        payload = self._load_payload(metadata.backup_id)
        if payload is None:
            return failed(f"Backup payload {options.backup_id} not found")
        if payload_checksum(payload) != metadata.checksum:
            self._mark_corrupted(metadata)
            return failed("Checksum mismatch - backup may be corrupted")
        try:
            data = self._decode(metadata, payload)
        except BackupIntegrityError as exc:
            return failed(str(exc))

        requested = options.data_types or metadata.data_types
        missing = [data_type for data_type in requested if data_type not in data]
        errors = [f"Missing data type: {data_type}" for data_type in missing]
        if options.validate_first and errors:
            warnings.extend(errors)

        if options.dry_run:
            warnings.append("Dry run mode - no data was actually restored")
            return RecoveryReport(
                backup_id=options.backup_id,
                started_at_utc=started,
                finished_at_utc=utc_now_iso(),
                status="success",
                items=[],
                successful_items=0,
                failed_items=0,
                warnings=warnings,
                errors=errors,
            )

        items: list[DataTypeReport] = []
        for data_type in requested:
            if data_type in missing:
                items.append(
                    DataTypeReport(data_type, 0, 1, [f"Missing data type: {data_type}"])
                )
                continue
            items.append(self._restore_type(data_type, data[data_type], options))
        successful = sum(item.restored for item in items)
        failed_count = sum(item.failed for item in items)
        report = RecoveryReport(
            backup_id=options.backup_id,
            started_at_utc=started,
            finished_at_utc=utc_now_iso(),
            status=_restore_status(successful, failed_count),
            items=items,
            successful_items=successful,
            failed_items=failed_count,
            warnings=warnings,
            errors=[error for item in items for error in item.errors],
        )
        self._activity_log.log_system(
            f"Data restored from backup {options.backup_id}: "
            f"{report.successful_items}/{report.total_items} items",
            owner_id,
        )
        safe_notify(
            self._notifier,
            SystemAlert(
                level="low" if report.status == "success" else "medium",
                title="Data Restore Completed",
                component="Backup System",
                description=(
                    f"Data restore from backup {options.backup_id} "
                    f"completed with status: {report.status}"
                ),
                action_required=report.status != "success",
            ),
        )
        logger.info(
            "backup.restored id=%s status=%s ok=%s failed=%s",
            options.backup_id,
            report.status,
            successful,
            failed_count,
        )
        return report

    def verify(self, backup_id: str) -> VerificationResult:
        try:
            metadata = self.get_metadata(backup_id)
        except NotFoundError:
            return VerificationResult(valid=False, errors=["Backup not found"])
        payload = self._load_payload(backup_id)
        if payload is None:
            return VerificationResult(valid=False, errors=["Backup payload not found"])
        if payload_checksum(payload) != metadata.checksum:
            return VerificationResult(
                valid=False, errors=["Checksum mismatch - backup may be corrupted"]
            )
        try:
            data = self._decode(metadata, payload)
        except BackupIntegrityError as exc:
            return VerificationResult(valid=False, errors=[str(exc)])
        errors = [f"Missing data type: {t}" for t in metadata.data_types if t not in data]
        return VerificationResult(valid=not errors, errors=errors)

    def list_history(self, include_all: bool = False) -> list[BackupMetadata]:
        """Backups newest first; only completed ones unless `include_all`."""
        documents = self._persistence.get_list(BACKUP_HISTORY_COLLECTION, WORKSPACE_OWNER)
        history = [BackupMetadata.from_document(document) for document in documents]
        if not include_all:
            history = [item for item in history if item.status == "completed"]
        return sorted(history, key=lambda item: item.timestamp_utc, reverse=True)

    def get_metadata(self, backup_id: str) -> BackupMetadata:
        for metadata in self.list_history(include_all=True):
            if metadata.backup_id == backup_id:
                return metadata
        raise NotFoundError(f"Backup {backup_id} not found")

    def delete_backup(self, backup_id: str, owner_id: str | None = None) -> None:
        def drop(items: list[dict[str, object]]) -> bool:
            for index, item in enumerate(items):
                if item.get("id") == backup_id:
                    del items[index]
                    return True
            return False

        removed, _ = self._persistence.update_list(
            BACKUP_HISTORY_COLLECTION, WORKSPACE_OWNER, drop
        )
        if not removed:
            raise NotFoundError(f"Backup {backup_id} not found")
        self._persistence.delete(BACKUP_PAYLOADS_COLLECTION, backup_id)
        if self._mirror is not None:
            try:
                self._mirror.remove(backup_id=backup_id)
            except OSError as exc:
                logger.warning("backup.mirror_remove_failed id=%s error=%s", backup_id, exc)
        self._activity_log.log_system(f"Backup deleted: {backup_id}", owner_id)

    def cleanup_old_backups(self, now: datetime | None = None) -> list[str]:
        """Delete completed backups older than the retention window."""
        cutoff = (now or datetime.now(UTC)) - timedelta(days=self.configuration.retention_days)
        removed: list[str] = []
        for metadata in self.list_history():
            created = parse_timestamp(metadata.timestamp_utc)
            if created is not None and created < cutoff:
                self.delete_backup(metadata.backup_id)
                removed.append(metadata.backup_id)
        if removed:
            logger.info("backup.cleanup removed=%s", len(removed))
        return removed

    def storage_statistics(self) -> dict[str, object]:
        completed = self.list_history()
        total_size = sum(item.size for item in completed)
        timestamps = sorted(item.timestamp_utc for item in completed)
        return {
            "totalBackups": len(completed),
            "totalSize": total_size,
            "totalSizeLabel": format_file_size(total_size),
            "oldestBackup": timestamps[0] if timestamps else None,
            "newestBackup": timestamps[-1] if timestamps else None,
            "averageSize": total_size / len(completed) if completed else 0,
        }

    def _put_metadata(self, metadata: BackupMetadata) -> None:
        def upsert(items: list[dict[str, object]]) -> None:
            for index, item in enumerate(items):
                if item.get("id") == metadata.backup_id:
                    items[index] = metadata.to_document()
                    return
            items.append(metadata.to_document())

        _, saved = self._persistence.update_list(
            BACKUP_HISTORY_COLLECTION, WORKSPACE_OWNER, upsert
        )
        if not saved:
            logger.error(
                "backup.metadata_persist_failed id=%s status=%s",
                metadata.backup_id,
                metadata.status,
            )

    def _collect(self, data_types: tuple[str, ...]) -> dict[str, object]:
        snapshot: dict[str, object] = {}
        for data_type in data_types:
            if data_type in OWNER_SCOPED_TYPES:
                collection = OWNER_SCOPED_TYPES[data_type]
                snapshot[data_type] = {
                    owner: self._persistence.get(collection, owner)
                    for owner in self._persistence.owners(collection)
                }
            elif data_type in WORKSPACE_TYPES:
                snapshot[data_type] = self._persistence.get_list(
                    WORKSPACE_TYPES[data_type], WORKSPACE_OWNER
                )
            elif data_type == "settings":
                snapshot[data_type] = {
                    "backup": self.configuration.to_document(),
                    "version": PAYLOAD_VERSION,
                }
            else:
                raise ValidationError([f"unknown data type: {data_type}"])
        return snapshot

    def _load_payload(self, backup_id: str) -> str | None:
        stored = self._persistence.get(BACKUP_PAYLOADS_COLLECTION, backup_id)
        if isinstance(stored, str):
            return stored
        if self._mirror is not None:
            return self._mirror.get(backup_id=backup_id)
        return None

    def _decode(self, metadata: BackupMetadata, payload: str) -> dict[str, Any]:
        text = codec_for(metadata.encoding, self._encryption_key).decode(payload)
        try:
            document = json.loads(text)
        except json.JSONDecodeError as exc:
            raise BackupIntegrityError(f"Backup payload is not valid JSON: {exc}") from exc
        data = document.get("data") if isinstance(document, dict) else None
        if not isinstance(data, dict):
            raise BackupIntegrityError("Invalid backup data format")
        return data

    def _mark_corrupted(self, metadata: BackupMetadata) -> None:
        self._put_metadata(replace(metadata, status="corrupted", error="Checksum mismatch"))
        logger.error("backup.corrupted id=%s", metadata.backup_id)
        safe_notify(
            self._notifier,
            SystemAlert(
                level="high",
                title="Backup Corrupted",
                component="Backup System",
                description=f"Backup {metadata.backup_id} failed checksum verification",
                action_required=True,
                action_description="Create a fresh backup and investigate storage integrity",
            ),
        )

    def _restore_type(
        self, data_type: str, value: object, options: RestoreOptions
    ) -> DataTypeReport:
        try:
            if data_type in OWNER_SCOPED_TYPES:
                return self._restore_owner_scoped(data_type, value, options)
            if data_type in WORKSPACE_TYPES:
                items = value if isinstance(value, list) else None
                if items is None:
                    raise BackupIntegrityError(f"{data_type} must be a list")
                ok = self._persistence.save(WORKSPACE_TYPES[data_type], items, WORKSPACE_OWNER)
                if not ok:
                    return DataTypeReport(data_type, 0, len(items), [f"Failed to save {data_type}"])
                return DataTypeReport(data_type, len(items), 0)
            if data_type == "settings":
                settings = value.get("backup") if isinstance(value, Mapping) else None
                if not isinstance(settings, Mapping):
                    raise BackupIntegrityError("settings must contain a backup section")
                restored = BackupConfiguration.from_document(settings)
                restored.validate()
                self._persistence.save(
                    SETTINGS_COLLECTION, restored.to_document(), BACKUP_SETTINGS_KEY
                )
                return DataTypeReport(data_type, 1, 0)
            return DataTypeReport(data_type, 0, 1, [f"Unknown data type: {data_type}"])
        except Exception as exc:
            logger.warning("backup.restore_type_failed type=%s error=%s", data_type, exc)
            return DataTypeReport(data_type, 0, 1, [f"Failed to restore {data_type}: {exc}"])

    def _restore_owner_scoped(
        self, data_type: str, value: object, options: RestoreOptions
    ) -> DataTypeReport:
        if not isinstance(value, Mapping):
            raise BackupIntegrityError(f"{data_type} must map owners to records")
        collection = OWNER_SCOPED_TYPES[data_type]
        restored = 0
        failed = 0
        errors: list[str] = []
        for owner, record in value.items():
            if data_type == "activities" and isinstance(record, list):
                record = _within_dates(record, options.date_start, options.date_end)
            count = len(record) if isinstance(record, list) else 1
            if self._persistence.save(collection, record, str(owner)):
                restored += count
            else:
                failed += count
                errors.append(f"Failed to restore {data_type} for {owner}")
        return DataTypeReport(data_type, restored, failed, errors)


def _within_dates(
    activities: list[object], start: str | None, end: str | None
) -> list[object]:
    start_at = parse_timestamp(start)
    end_at = parse_timestamp(end)
    if start_at is None and end_at is None:
        return activities
    kept: list[object] = []
    for activity in activities:
        if not isinstance(activity, Mapping):
            continue
        stamp = parse_timestamp(activity.get("timestamp"))
        if stamp is None:
            continue
        if start_at is not None and stamp < start_at:
            continue
        if end_at is not None and stamp > end_at:
            continue
        kept.append(activity)
    return kept
