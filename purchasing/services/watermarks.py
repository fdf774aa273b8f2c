"""
Sync watermarks, stored as ``app_config`` rows.

A watermark is the instant below which external records are assumed to be
reconciled already. The epoch sentinel means "never synced".
"""
from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy.orm import Session

from purchasing.app.db.models.core_types import SyncKey
from purchasing.app.db.models.models_v1 import AppConfig

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _parse(value: str | None) -> datetime | None:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return None if parsed <= EPOCH else parsed


def get_watermark(db: Session, key: SyncKey) -> datetime | None:
    row = db.get(AppConfig, key.value)
    return _parse(row.config_value) if row else None


def set_watermark(db: Session, key: SyncKey, when: datetime) -> datetime:
    """Move the watermark forward to ``when``; never backwards. Does not commit."""
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)

    row = db.get(AppConfig, key.value)
    if row is None:
        row = AppConfig(config_key=key.value, config_value=EPOCH.isoformat())
        db.add(row)

    current = _parse(row.config_value)
    if current is not None and current >= when:
        return current

    row.config_value = when.astimezone(timezone.utc).isoformat()
    return when


def get_sync_status(db: Session) -> dict[str, datetime | None]:
    return {key.value: get_watermark(db, key) for key in SyncKey}
