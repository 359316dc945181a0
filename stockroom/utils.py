from __future__ import annotations

from datetime import datetime, timezone


def iso_now() -> str:
    # Use UTC ISO timestamps for consistency.
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


def round_money(v: float) -> float:
    return round(float(v), 2)


def clean_text(v) -> str | None:
    if v is None:
        return None
    s = str(v).strip()
    return s if s else None
