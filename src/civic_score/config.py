"""Centralized configuration for the civic-score engine.

Settings are read once at import time from environment variables or a ``.env``
file.  They are plain immutable values: scoring functions never read this
module directly, the CLI and API build explicit config objects from it and
pass them in.

**Profile system:** ``CIVIC_PROFILE=dev`` (default) or ``CIVIC_PROFILE=prod``
selects a set of defaults.  Any individual ``CIVIC_*`` var still overrides the
profile value.

Usage::

    from civic_score.config import DATA_DIR, signal_settings

    outcome = classify_bill(bill, ..., settings=signal_settings())
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

from .signals import SignalSettings

load_dotenv()

LOGGER = logging.getLogger(__name__)

# ── Profile ──────────────────────────────────────────────────────────────────

PROFILE: str = os.getenv("CIVIC_PROFILE", "dev").lower().strip()

_PROFILE_DEFAULTS: dict[str, dict[str, str]] = {
    "dev": {
        "CIVIC_DATA_DIR": "data",
        "CIVIC_STORE_DIR": "store",
        "CIVIC_CORS_ORIGINS": "*",
    },
    "prod": {
        "CIVIC_DATA_DIR": "/var/lib/civic-score/data",
        "CIVIC_STORE_DIR": "/var/lib/civic-score/store",
        "CIVIC_CORS_ORIGINS": "",  # empty → must be explicitly set
    },
}

if PROFILE not in _PROFILE_DEFAULTS:
    LOGGER.warning("Unknown CIVIC_PROFILE=%r, falling back to 'dev'.", PROFILE)
    PROFILE = "dev"

_defaults = _PROFILE_DEFAULTS[PROFILE]


def _env(key: str, fallback: str = "") -> str:
    """Read an env var, falling back to profile default then *fallback*."""
    return os.getenv(key, _defaults.get(key, fallback))


def _env_float(key: str, fallback: float) -> float:
    raw = _env(key, "").strip()
    if not raw:
        return fallback
    try:
        return float(raw)
    except ValueError:
        LOGGER.warning("Ignoring non-numeric %s=%r, using %s.", key, raw, fallback)
        return fallback


# ── Directories ──────────────────────────────────────────────────────────────
DATA_DIR: Path = Path(_env("CIVIC_DATA_DIR", "data"))
STORE_DIR: Path = Path(_env("CIVIC_STORE_DIR", "store"))
RUN_LOG_PATH: Path = Path(_env("CIVIC_RUN_LOG", ".run_log.jsonl"))

# ── Scoring knobs ────────────────────────────────────────────────────────────
# Half weight every ~6 months.
HALF_LIFE_DAYS: float = _env_float("CIVIC_HALF_LIFE_DAYS", 180.0)
MIN_SIGNAL_CONFIDENCE: float = _env_float("CIVIC_MIN_SIGNAL_CONFIDENCE", 0.6)
# Direction assigned to policy-area fast-path signals.  0 = neutral, which
# drops them; classifier output then decides.
POLICY_AREA_DIRECTION: int = int(_env_float("CIVIC_POLICY_AREA_DIRECTION", 0))
POLICY_AREA_WEIGHT_FACTOR: float = _env_float("CIVIC_POLICY_AREA_WEIGHT_FACTOR", 0.7)
SOURCE_VERSION: int = int(_env_float("CIVIC_SOURCE_VERSION", 1))

# ── Security / network ──────────────────────────────────────────────────────
CORS_ORIGINS: str = _env("CIVIC_CORS_ORIGINS").strip()
API_KEY: str = _env("CIVIC_API_KEY").strip()

if PROFILE == "prod":
    if CORS_ORIGINS in ("*", ""):
        LOGGER.warning(
            "CIVIC_PROFILE=prod but CIVIC_CORS_ORIGINS=%r. "
            "Set it to your front-end origin(s) for security.",
            CORS_ORIGINS,
        )
    if not API_KEY:
        LOGGER.warning("CIVIC_PROFILE=prod but CIVIC_API_KEY is empty. API is unprotected.")

if POLICY_AREA_DIRECTION not in (-1, 0, 1):
    LOGGER.warning(
        "CIVIC_POLICY_AREA_DIRECTION=%d is not -1/0/1, using 0.", POLICY_AREA_DIRECTION
    )
    POLICY_AREA_DIRECTION = 0


def signal_settings() -> SignalSettings:
    """Build the signal-extraction settings from the environment values."""
    return SignalSettings(
        min_confidence=MIN_SIGNAL_CONFIDENCE,
        policy_area_direction=POLICY_AREA_DIRECTION,
        policy_area_weight_factor=POLICY_AREA_WEIGHT_FACTOR,
    )
