import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from dotenv import find_dotenv, load_dotenv

PACKAGE_DIR = Path(__file__).resolve().parent
# .env is looked up from the working directory, not the install location
load_dotenv(find_dotenv(usecwd=True), override=False)


@dataclass(frozen=True)
class Settings:
    pass_mark: float = 10.0
    grade_max: float = 20.0
    default_target: float = 10.0
    sample_catalog: Path = PACKAGE_DIR / "data" / "sample_catalog.csv"
    log_level: str = "INFO"


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw.strip().replace(",", "."))
    except ValueError:
        return default


def _env_level(name: str, default: str) -> str:
    raw = (os.getenv(name) or "").strip().upper()
    if raw and isinstance(logging.getLevelName(raw), int):
        return raw
    return default


def _as_path(base: Path, p: str) -> Path:
    pth = Path(p)
    return pth if pth.is_absolute() else (base / pth)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Build settings from LMD_* environment variables (and .env)."""
    defaults = Settings()

    pass_mark = _env_float("LMD_PASS_MARK", defaults.pass_mark)
    if not 0 <= pass_mark <= defaults.grade_max:
        pass_mark = defaults.pass_mark

    default_target = _env_float("LMD_DEFAULT_TARGET", defaults.default_target)
    if not 0 <= default_target <= defaults.grade_max:
        default_target = defaults.default_target

    catalog_env = os.getenv("LMD_SAMPLE_CATALOG", "").strip()
    sample_catalog = _as_path(Path.cwd(), catalog_env) if catalog_env else defaults.sample_catalog

    return Settings(
        pass_mark=pass_mark,
        default_target=default_target,
        sample_catalog=sample_catalog,
        log_level=_env_level("LMD_LOG_LEVEL", defaults.log_level),
    )


def configure_logging(level: str = None) -> None:
    logging.basicConfig(
        level=level or get_settings().log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
