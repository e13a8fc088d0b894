"""Forgetting-curve retention estimates for syllabus modules.

Retention follows the Ebbinghaus exponential decay ``R = e^(-t/S)`` where
``t`` is the number of days since the module was last studied and ``S`` is
the module's stability (`strength`). Scores are reported on a 0-100 scale.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

_LOGGER = logging.getLogger("studyboard.retention")

SECONDS_PER_DAY = 60 * 60 * 24
DEFAULT_STRENGTH = 1.0


def _round_half_up(value: float, ndigits: int = 0) -> float:
    scale = 10 ** ndigits
    return math.floor(value * scale + 0.5) / scale


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Normalise a stored timestamp to an aware UTC datetime.

    Returns None for a missing value and raises ValueError for anything
    that is not a datetime or an ISO-8601 string.
    """
    if value is None or value == "":
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    if not isinstance(value, datetime):
        raise ValueError(f"not a timestamp: {value!r}")
    if value.tzinfo is None:
        # SQLite drops tzinfo; stored values are UTC
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def estimate_retention(last_studied_at: Any, strength: Optional[float], now: datetime) -> tuple[int, float]:
    """Return ``(retention, elapsed_days)`` for a single module.

    A module that was never studied scores 0 with 0 elapsed days. A
    missing, zero or negative strength falls back to 1.0. `elapsed_days`
    is unrounded; callers round it for display.
    """
    studied = parse_timestamp(last_studied_at)
    if studied is None:
        return 0, 0.0
    now = parse_timestamp(now)
    elapsed_days = abs((now - studied).total_seconds()) / SECONDS_PER_DAY
    stability = strength if strength and strength > 0 else DEFAULT_STRENGTH
    retention = 100.0 * math.exp(-elapsed_days / stability)
    return int(_round_half_up(retention)), elapsed_days


def rank_by_retention(modules: Iterable[Any], now: Optional[datetime] = None) -> list[dict]:
    """Score every module and sort ascending by retention (most urgent first).

    `modules` may be SQLModel rows or plain dicts. Modules whose
    `last_studied_at` cannot be parsed are logged and left out of the
    ranking rather than producing a NaN score.
    """
    now = now or datetime.now(timezone.utc)
    ranked = []
    for module in modules:
        row = dict(module) if isinstance(module, dict) else module.model_dump()
        try:
            retention, elapsed = estimate_retention(row.get("last_studied_at"), row.get("strength"), now)
        except ValueError:
            _LOGGER.warning("skipping module %s: malformed last_studied_at %r", row.get("id"), row.get("last_studied_at"))
            continue
        row["retention"] = retention
        row["elapsed_days"] = _round_half_up(elapsed, 1)
        ranked.append(row)
    ranked.sort(key=lambda r: r["retention"])
    return ranked
