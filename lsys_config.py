import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv

from lsystem import LSystemError

# Load Environment Variables (may include a UTF-8 BOM if file saved with BOM)
load_dotenv()

_BOM = "\ufeff"

DEFAULT_MAX_ITERATIONS = 10
DEFAULT_MAX_SYMBOLS = 2_000_000
DEFAULT_IMAGE_SIZE = 800
DEFAULT_OUTPUT_DIR = "static"


@dataclass(frozen=True)
class Settings:
    max_iterations: int = DEFAULT_MAX_ITERATIONS
    max_symbols: int = DEFAULT_MAX_SYMBOLS
    image_size: int = DEFAULT_IMAGE_SIZE
    output_dir: str = DEFAULT_OUTPUT_DIR
    log_level: str = "INFO"


def get_env(name: str):
    """Return an environment value, stripping any UTF-8 BOM.

    A .env saved with a BOM can make python-dotenv register the first key
    as '\ufeffNAME', so both spellings are tried.
    """
    value = os.environ.get(name)
    if value is None:
        value = os.environ.get(f"{_BOM}{name}")
    if value is None:
        return None
    return value.lstrip(_BOM).strip()


def _get_int(name: str, default: int) -> int:
    raw = get_env(name)
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise LSystemError(f"{name} must be an integer, got {raw!r}") from e
    if value <= 0:
        raise LSystemError(f"{name} must be > 0, got {value}")
    return value


def load_settings() -> Settings:
    return Settings(
        max_iterations=_get_int("LSYSTEM_MAX_ITERATIONS", DEFAULT_MAX_ITERATIONS),
        max_symbols=_get_int("LSYSTEM_MAX_SYMBOLS", DEFAULT_MAX_SYMBOLS),
        image_size=_get_int("LSYSTEM_IMAGE_SIZE", DEFAULT_IMAGE_SIZE),
        output_dir=get_env("LSYSTEM_OUTPUT_DIR") or DEFAULT_OUTPUT_DIR,
        log_level=(get_env("LOG_LEVEL") or "INFO").upper(),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()
