"""UTC-focused helpers for run metadata."""

from __future__ import annotations

from datetime import datetime, timezone


def utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


def utc_timestamp_iso() -> str:
    return utc_now().isoformat(timespec="milliseconds")


def generate_run_id(prefix: str = "run") -> str:
    return utc_now().strftime(f"{prefix}-%Y%m%dT%H%M%S%fZ")
