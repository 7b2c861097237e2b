"""Environment-driven settings."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .results import ClockTime

ORACLE_BACKENDS = ("astral", "ephemeris")


@dataclass(frozen=True)
class Settings:
    oracle: str = "astral"
    ladder_start: ClockTime = ClockTime(16, 0)
    ladder_end: ClockTime = ClockTime(21, 0)
    ladder_step: int = 30
    horizon_days: int = 365
    kernel_path: Optional[str] = None
    kernel_cache_dir: Optional[str] = None


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Read :class:`Settings` from *environ* (``os.environ`` by default).

    Raises ``ValueError`` for unknown backends or malformed values.
    """

    env = os.environ if environ is None else environ

    oracle = env.get("SUNSET_ORACLE", "astral").strip().lower()
    if oracle not in ORACLE_BACKENDS:
        raise ValueError(f"SUNSET_ORACLE must be one of {', '.join(ORACLE_BACKENDS)}, got {oracle!r}")

    start = ClockTime.parse(env.get("SUNSET_LADDER_START", "16:00"))
    end = ClockTime.parse(env.get("SUNSET_LADDER_END", "21:00"))
    if end.minutes < start.minutes:
        raise ValueError("SUNSET_LADDER_END must not be earlier than SUNSET_LADDER_START")

    step = int(env.get("SUNSET_LADDER_STEP", "30"))
    horizon = int(env.get("SUNSET_HORIZON_DAYS", "365"))
    if step <= 0 or horizon <= 0:
        raise ValueError("SUNSET_LADDER_STEP and SUNSET_HORIZON_DAYS must be positive")

    return Settings(
        oracle=oracle,
        ladder_start=start,
        ladder_end=end,
        ladder_step=step,
        horizon_days=horizon,
        kernel_path=env.get("DE_BSP") or None,
        kernel_cache_dir=env.get("DE_BSP_CACHE_DIR") or None,
    )
