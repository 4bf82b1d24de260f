import os

from dotenv import find_dotenv, load_dotenv

from expense_categorizer.logger import get_logger

logger = get_logger(__name__)


CONFIG_FILENAME = "config.yaml"

_CONFIG_FILE_PATH: str | None = None
_CONFIG_FILE_VALUES: dict[str, str] = {}

_CONFIG_KEYS = (
    "LOG_LEVEL",
    "LOG_DIR",
    "SUPABASE_URL",
    "SUPABASE_SERVICE_ROLE_KEY",
    "SEED_FILE",
    "RULES_PATH",
    "HISTORY_SAMPLE_SIZE",
    "BULK_APPLY_MIN_CONFIDENCE",
    "SINGLE_AUTO_APPLY_THRESHOLD",
    "BULK_SUGGESTION_CAP",
    "BULK_WRITE_CONCURRENCY",
    "BULK_WRITE_TIMEOUT",
)


def _resolve_dotenv_path() -> str | None:
    config_dir = os.getenv("CONFIG_DIR")
    if config_dir:
        candidate = os.path.join(config_dir, ".env")
        if os.path.exists(candidate):
            return candidate
    resolved = find_dotenv(usecwd=True)
    return resolved or None


def _resolve_config_path() -> str:
    config_dir = os.getenv("CONFIG_DIR")
    if config_dir:
        return os.path.join(config_dir, CONFIG_FILENAME)
    cwd = os.getcwd()
    candidate = os.path.join(cwd, "config", CONFIG_FILENAME)
    if os.path.exists(candidate):
        return candidate
    return os.path.join(cwd, CONFIG_FILENAME)


def _unquote_value(raw_value: str) -> str:
    if len(raw_value) >= 2 and raw_value[0] == raw_value[-1] and raw_value[0] in {'"', "'"}:
        return raw_value[1:-1]
    return raw_value


def read_config_file(path: str | None) -> dict[str, str]:
    """Read flat ``KEY: value`` lines; comments and blank lines are skipped."""
    if not path or not os.path.exists(path):
        return {}

    values: dict[str, str] = {}
    with open(path, encoding="utf-8") as handle:
        for line in handle:
            stripped = line.strip()
            if not stripped or stripped.startswith("#") or ":" not in stripped:
                continue
            key, raw_value = stripped.split(":", 1)
            key = key.strip()
            value = _unquote_value(raw_value.split(" #", 1)[0].strip())
            if key and value:
                values[key] = value
    return values


def load_environment() -> None:
    global _CONFIG_FILE_PATH
    global _CONFIG_FILE_VALUES

    dotenv_path = _resolve_dotenv_path()
    if dotenv_path:
        load_dotenv(dotenv_path=dotenv_path, override=False)

    _CONFIG_FILE_PATH = _resolve_config_path()
    _CONFIG_FILE_VALUES = read_config_file(_CONFIG_FILE_PATH)

    for key in _CONFIG_KEYS:
        if key not in os.environ and key in _CONFIG_FILE_VALUES:
            os.environ[key] = _CONFIG_FILE_VALUES[key]


def get_config_path() -> str | None:
    return _CONFIG_FILE_PATH


def ensure_dir(path: str | None) -> None:
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
        logger.warning(
            "[ENV] %s='%s' below minimum %s, using default %s.",
            name,
            raw,
            min_value,
            default,
        )
        return default
    return value


def get_env_float(
    name: str,
    default: float,
    min_value: float | None = None,
    max_value: float | None = None,
) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("[ENV] Invalid %s='%s', using default %s.", name, raw, default)
        return default
    if (min_value is not None and value < min_value) or (max_value is not None and value > max_value):
        logger.warning("[ENV] %s='%s' out of range, using default %s.", name, raw, default)
        return default
    return value


_SENSITIVE_ENV_KEYS = ("KEY", "TOKEN", "SECRET", "PASSWORD", "AUTH")


def _mask_env_value(name: str, value: str) -> str:
    sanitized = value.replace("\r", "\\r").replace("\n", "\\n")
    if not any(marker in name.upper() for marker in _SENSITIVE_ENV_KEYS):
        return sanitized
    if len(sanitized) <= 4:
        return "****"
    return f"{sanitized[:2]}...{sanitized[-2:]}"


def log_environment() -> None:
    logger.info("[ENV] Logging configured environment variables (masked where needed).")
    logger.info("[ENV] Config file: %s", get_config_path() or "<none>")
    for key in _CONFIG_KEYS:
        raw_value = os.getenv(key)
        value = "<unset>" if raw_value is None else _mask_env_value(key, raw_value)
        logger.info("[ENV] %s=%s", key, value)


def get_bulk_apply_min_confidence() -> float:
    """Configurable upwards only; the gate never drops below the default."""
    return get_env_float(
        "BULK_APPLY_MIN_CONFIDENCE",
        DEFAULT_BULK_APPLY_MIN_CONFIDENCE,
        min_value=DEFAULT_BULK_APPLY_MIN_CONFIDENCE,
        max_value=1.0,
    )


DEFAULT_HISTORY_SAMPLE_SIZE = 1000
DEFAULT_BULK_APPLY_MIN_CONFIDENCE = 0.7
DEFAULT_SINGLE_AUTO_APPLY_THRESHOLD = 0.8
DEFAULT_BULK_SUGGESTION_CAP = 50
DEFAULT_BULK_WRITE_CONCURRENCY = 5
DEFAULT_BULK_WRITE_TIMEOUT = 10.0

# Yield to the event loop every N classified transactions.
STREAM_YIELD_EVERY = 50


load_environment()

LOG_DIR = os.getenv("LOG_DIR")
ensure_dir(LOG_DIR)

RULES_PATH = os.getenv("RULES_PATH") or None
SEED_FILE = os.getenv("SEED_FILE") or None

HISTORY_SAMPLE_SIZE = get_env_int("HISTORY_SAMPLE_SIZE", DEFAULT_HISTORY_SAMPLE_SIZE, min_value=0)
BULK_APPLY_MIN_CONFIDENCE = get_bulk_apply_min_confidence()
SINGLE_AUTO_APPLY_THRESHOLD = get_env_float(
    "SINGLE_AUTO_APPLY_THRESHOLD", DEFAULT_SINGLE_AUTO_APPLY_THRESHOLD, min_value=0.0, max_value=1.0
)
BULK_SUGGESTION_CAP = get_env_int("BULK_SUGGESTION_CAP", DEFAULT_BULK_SUGGESTION_CAP, min_value=1)
BULK_WRITE_CONCURRENCY = get_env_int("BULK_WRITE_CONCURRENCY", DEFAULT_BULK_WRITE_CONCURRENCY, min_value=1)
BULK_WRITE_TIMEOUT = get_env_float("BULK_WRITE_TIMEOUT", DEFAULT_BULK_WRITE_TIMEOUT, min_value=0.001)
