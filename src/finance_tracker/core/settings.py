"""Environment layering: real env vars win over ``.env``, which wins over ``config.yaml``."""

import os
import shlex

from dotenv import find_dotenv, load_dotenv

from finance_tracker.logger import get_logger

logger = get_logger(__name__)


CONFIG_FILENAME = "config.yaml"

CONFIG_KEYS = (
    "LOG_LEVEL",
    "LOG_DIR",
    "DATA_DIR",
    "API_BASE_URL",
    "API_TOKEN",
    "REALTIME_URL",
    "REALTIME_RECONNECT_ATTEMPTS",
    "OCR_URL",
    "OCR_TOKEN",
    "OPENAI_API_KEY",
    "OPENAI_MODEL",
    "OPENAI_BASE_URL",
    "USER_EMAIL",
    "SEARCH_DEBOUNCE_MS",
    "SYNC_INTERVAL_SECONDS",
    "REQUEST_TIMEOUT_SECONDS",
    "HOST",
    "PORT",
)

_state: dict[str, object] = {
    "config_path": None,
    "file_values": {},
    "external_keys": frozenset(),
}


def _dotenv_path() -> str | None:
    config_dir = os.getenv("CONFIG_DIR")
    if config_dir:
        candidate = os.path.join(config_dir, ".env")
        if os.path.exists(candidate):
            return candidate
    return find_dotenv(usecwd=True) or None


def _config_path() -> str:
    config_dir = os.getenv("CONFIG_DIR")
    if config_dir:
        return os.path.join(config_dir, CONFIG_FILENAME)
    nested = os.path.join(os.getcwd(), "config", CONFIG_FILENAME)
    if os.path.exists(nested):
        return nested
    return os.path.join(os.getcwd(), CONFIG_FILENAME)


def parse_config_line(line: str) -> tuple[str, str] | None:
    """Parse one ``key: value`` line. Quotes and trailing ``#`` comments are honoured."""
    key, sep, raw_value = line.partition(":")
    key = key.strip()
    if not sep or not key or key.startswith("#"):
        return None
    try:
        tokens = shlex.split(raw_value, comments=True)
    except ValueError:
        logger.warning("[ENV] Unbalanced quotes for '%s' in %s; ignoring.", key, CONFIG_FILENAME)
        return None
    value = " ".join(tokens)
    if not value:
        return None
    return key, value


def read_config_file(path: str | None) -> dict[str, str]:
    if not path or not os.path.exists(path):
        return {}
    values: dict[str, str] = {}
    with open(path, encoding="utf-8") as handle:
        for line in handle:
            parsed = parse_config_line(line)
            if parsed:
                values[parsed[0]] = parsed[1]
    return values


def load_environment() -> None:
    dotenv_path = _dotenv_path()
    if dotenv_path:
        load_dotenv(dotenv_path=dotenv_path, override=False)

    _state["external_keys"] = frozenset(os.environ)

    path = _config_path()
    file_values = read_config_file(path)
    _state["config_path"] = path
    _state["file_values"] = file_values

    for key in CONFIG_KEYS:
        if key in file_values:
            os.environ.setdefault(key, file_values[key])


def is_env_override(name: str) -> bool:
    return name in _state["external_keys"]  # type: ignore[operator]


def ensure_dirs(*paths: str | None) -> None:
    for path in paths:
        if path and path not in {".", "./"}:
            os.makedirs(path, exist_ok=True)


def get_env_int(name: str, default: int, min_value: int | None = None) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("[ENV] Invalid %s='%s', using default %s.", name, raw, default)
        return default
    if min_value is not None and value < min_value:
        logger.warning("[ENV] %s=%s below minimum %s, using default %s.", name, value, min_value, default)
        return default
    return value


def get_env_float(name: str, default: float = 0.0, min_value: float | None = None) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("[ENV] Invalid %s='%s', using default %s.", name, raw, default)
        return default
    if min_value is not None and value < min_value:
        logger.warning("[ENV] %s=%s below minimum %s, using default %s.", name, value, min_value, default)
        return default
    return value


_SECRET_MARKERS = ("KEY", "TOKEN", "SECRET", "PASSWORD", "AUTH", "COOKIE")


def mask_value(name: str, value: str) -> str:
    cleaned = value.replace("\r", "\\r").replace("\n", "\\n")
    secret = any(marker in name.upper() for marker in _SECRET_MARKERS) or cleaned.startswith(("sk-", "Bearer "))
    if not secret:
        return cleaned
    if len(cleaned) <= 4:
        return "****"
    return f"{cleaned[:2]}...{cleaned[-2:]}"


def log_environment() -> None:
    logger.info("[ENV] Config file: %s", _state["config_path"] or "<none>")
    logger.info("[ENV] Effective configuration (secrets masked):")
    for key in CONFIG_KEYS:
        raw_value = os.getenv(key)
        shown = "<unset>" if raw_value is None else mask_value(key, raw_value)
        source = "env" if is_env_override(key) else "config"
        logger.info("[ENV] %s=%s (%s)", key, shown, source if raw_value is not None else "default")


DEFAULT_SEARCH_DEBOUNCE_MS = 300
DEFAULT_REQUEST_TIMEOUT_SECONDS = 15.0
DEFAULT_REALTIME_RECONNECT_ATTEMPTS = 5


load_environment()

DATA_DIR = os.getenv("DATA_DIR", ".")
LOG_DIR = os.getenv("LOG_DIR")
CONFIG_DIR = os.getenv("CONFIG_DIR")
CACHE_DIR = os.path.join(DATA_DIR, "cache")

ensure_dirs(DATA_DIR, LOG_DIR, CONFIG_DIR, CACHE_DIR)

USER_EMAIL = os.getenv("USER_EMAIL") or None

SEARCH_DEBOUNCE_MS = get_env_int("SEARCH_DEBOUNCE_MS", DEFAULT_SEARCH_DEBOUNCE_MS, min_value=0)
SYNC_INTERVAL_SECONDS = get_env_float("SYNC_INTERVAL_SECONDS", 0.0, min_value=0.0)
REQUEST_TIMEOUT_SECONDS = get_env_float(
    "REQUEST_TIMEOUT_SECONDS",
    DEFAULT_REQUEST_TIMEOUT_SECONDS,
    min_value=0.1,
)
REALTIME_RECONNECT_ATTEMPTS = get_env_int(
    "REALTIME_RECONNECT_ATTEMPTS",
    DEFAULT_REALTIME_RECONNECT_ATTEMPTS,
    min_value=0,
)

HOST = os.getenv("HOST", "127.0.0.1")
PORT = get_env_int("PORT", 8000, min_value=1)
