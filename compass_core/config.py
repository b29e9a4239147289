from __future__ import annotations
import os, json, pathlib


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw.strip())
    except ValueError:
        return default


# Likert 1..5: reversed value is PIVOT - v
REVERSE_PIVOT: int = 6
TOP_STRENGTHS: int = 3

GROUPED_TIER_SIZE: int = 3

INTEGRITY_MIN_ANSWERS: int = 10
PATTERN_MIN_ANSWERS: int = 20
DOMINANT_SHARE: float = 0.95
PATTERN_MIN_LEN: int = 2
PATTERN_MAX_LEN: int = 10
PATTERN_MIN_MATCHES: int = 5
PATTERN_MIN_CONSISTENCY: float = 0.7

RATING_MIN: int = 1
RATING_MAX: int = 5

DEFAULT_CHUNK_SIZE: int = 9

STORE_RESULTS: bool = True
SEND_EMAIL: bool = True
SHOW_RESULTS_TO_USER: bool = True
GENERATE_PDF: bool = True
SESSION_TTL_DAYS: int = 7
MAILER_TIMEOUT_SEC: float = 30.0
DEFAULT_TEST_ID: str = "career-compass"

# // env overrides for staging/ops; defaults mirror the production deployment.
STORE_RESULTS = _env_bool("STORE_RESULTS", STORE_RESULTS)
SEND_EMAIL = _env_bool("SEND_EMAIL", SEND_EMAIL)
SHOW_RESULTS_TO_USER = _env_bool("SHOW_RESULTS_TO_USER", SHOW_RESULTS_TO_USER)
GENERATE_PDF = _env_bool("GENERATE_PDF", GENERATE_PDF)
SESSION_TTL_DAYS = _env_int("SESSION_TTL_DAYS", SESSION_TTL_DAYS)
MAILER_TIMEOUT_SEC = _env_float("MAILER_TIMEOUT_SEC", MAILER_TIMEOUT_SEC)
DEFAULT_TEST_ID = os.getenv("DEFAULT_TEST_ID", DEFAULT_TEST_ID)

_CONFIG_KEYS = ("MAILER_API_URL", "MAILER_ACCESS_KEY", "MAILER_FROM_NAME", "ACCESS_KEY")
_CONFIG_DEFAULTS = {
    "MAILER_API_URL": "",
    "MAILER_ACCESS_KEY": "",
    "MAILER_FROM_NAME": "Career Compass Reports",
    "ACCESS_KEY": "",
}


def tests_dir() -> pathlib.Path | None:
    raw = os.getenv("TESTS_DIR")
    return pathlib.Path(raw) if raw else None


def load_config(path: str = "config.json") -> dict:
    """Service secrets: defaults < config.json < environment."""
    cfg = dict(_CONFIG_DEFAULTS)
    p = pathlib.Path(path)
    if p.exists():
        try:
            data = json.loads(p.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            data = {}
        if isinstance(data, dict):
            cfg.update({k: v for k, v in data.items() if k in _CONFIG_KEYS})
    e = os.environ
    for k in _CONFIG_KEYS:
        if e.get(k):
            cfg[k] = e.get(k)
    return cfg
