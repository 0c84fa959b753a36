"""Runtime configuration.

Values come from explicit arguments first (CLI flags, HTTP request body),
then environment variables (optionally loaded from a `.env` file), then the
defaults below.
"""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from typing import Any, List, Mapping, Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .models import CrawlOptions

DEFAULT_KEYWORD = "前端工程師"
DEFAULT_PAGES = 1
DEFAULT_DELAY_MS = 700
DEFAULT_PROVIDERS = "104,yourator,1111"
DEFAULT_OUTPUT = "data/jobs.json"
DEFAULT_PORT = 3000

LOG_FORMAT = "%(asctime)s | %(levelname)-7s | %(name)s | %(message)s"


def load_env() -> None:
    """Load `.env` into the process environment without overriding set values."""
    load_dotenv(override=False)


def split_providers(value: Any) -> List[str]:
    """Accept "a,b" strings or lists; strip blanks."""
    if value is None:
        return []
    if isinstance(value, str):
        items = value.split(",")
    else:
        items = [str(v) for v in value]
    return [s.strip() for s in items if s and s.strip()]


def env_bool(name: str, default: bool = False) -> bool:
    val = os.getenv(name)
    if val is None:
        return default
    return val.strip().lower() in ("1", "true", "yes", "on")


def _to_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _pick_int(explicit: Any, env_name: str, default: int, minimum: int) -> int:
    for candidate in (_to_int(explicit), _to_int(os.getenv(env_name))):
        if candidate is not None and candidate >= minimum:
            return candidate
    return default


def merge_options(partial: Optional[Mapping[str, Any]] = None) -> CrawlOptions:
    """Fill a CrawlOptions from a partial mapping, falling back to env and defaults.

    `output=""` explicitly disables writing; a missing output uses $OUTPUT.
    Invalid or out-of-range numbers fall back to the next source of values.
    """
    p = dict(partial or {})

    keyword = str(p.get("keyword") or "").strip() or os.getenv("KEYWORD") or DEFAULT_KEYWORD
    providers = split_providers(p.get("providers")) or split_providers(os.getenv("PROVIDERS", DEFAULT_PROVIDERS))

    debug = p.get("debug")
    if not isinstance(debug, bool):
        debug = env_bool("DEBUG")

    if p.get("output") == "":
        output: Optional[str] = None
    else:
        output = p.get("output") or os.getenv("OUTPUT", DEFAULT_OUTPUT) or None

    return CrawlOptions(
        keyword=keyword,
        pages=_pick_int(p.get("pages"), "PAGES", DEFAULT_PAGES, minimum=1),
        delay=_pick_int(p.get("delay"), "DELAY", DEFAULT_DELAY_MS, minimum=0),
        providers=providers,
        debug=debug,
        output=output,
    )


class ServiceSettings(BaseSettings):
    """Process-level settings for the HTTP service.

    Read from the environment (and `.env`): PORT, BROWSER, OUTPUT, DEBUG_DIR,
    DEBUG, LOG_LEVEL. Invalid values fail at startup.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",
        populate_by_name=True,
    )

    port: int = Field(default=DEFAULT_PORT, ge=1, le=65535)
    use_browser: bool = Field(default=True, validation_alias="BROWSER")
    output: str = Field(default=DEFAULT_OUTPUT, description="Default output file; HTTP callers may only write beside it.")
    debug_dir: str = "."
    debug: bool = False
    log_level: Optional[str] = None

    @property
    def level(self) -> str:
        return (self.log_level or ("DEBUG" if self.debug else "INFO")).upper()


@lru_cache()
def get_settings() -> ServiceSettings:
    """Settings loaded once per process; also loads `.env` for `merge_options`."""
    load_env()
    return ServiceSettings()


def setup_logging(level: str = "INFO") -> None:
    """Configure root logging for entry points."""
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)
