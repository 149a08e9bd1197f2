from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

from pydantic import BaseModel, Field, field_validator

LOG_FORMAT = "%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s"

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _default_home() -> Path:
    return Path.home() / ".certmerge"


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in _TRUE_VALUES


@dataclass
class MergeSettings:
    store_path: Path = field(default_factory=lambda: _default_home() / "templates.json")
    links_path: Path = field(default_factory=lambda: _default_home() / "links.json")
    log_level: str = "INFO"
    log_file: str | None = None
    blank_unmatched: bool = True  # absent fields become "" instead of staying as tokens
    coerce_dates: bool = True

    @classmethod
    def from_env(cls) -> "MergeSettings":
        """Build settings from ``CERTMERGE_*`` environment variables."""
        settings = cls()
        if os.getenv("CERTMERGE_STORE"):
            settings.store_path = Path(os.environ["CERTMERGE_STORE"]).expanduser()
        if os.getenv("CERTMERGE_LINKS"):
            settings.links_path = Path(os.environ["CERTMERGE_LINKS"]).expanduser()
        settings.log_level = os.getenv("CERTMERGE_LOG_LEVEL", settings.log_level).upper()
        settings.log_file = os.getenv("CERTMERGE_LOG_FILE") or None
        settings.blank_unmatched = _env_flag("CERTMERGE_BLANK_UNMATCHED", settings.blank_unmatched)
        settings.coerce_dates = _env_flag("CERTMERGE_COERCE_DATES", settings.coerce_dates)
        return settings


class SavedTemplate(BaseModel):
    """One entry of the persisted template library."""

    id: str
    name: str
    html: str = ""
    binary: str  # base64 encoded .docx
    placeholders: List[str] = Field(default_factory=list)
    uploadDate: str = ""

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str):
        v = v.strip()
        if not v:
            raise ValueError("template name must not be blank")
        return v


def configure_logging(level: str | int = "INFO", log_file: str | None = None) -> None:
    """Install the root log handlers once per process."""
    if logging.getLogger().handlers:
        return
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers)
