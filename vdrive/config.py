"""
Runtime configuration for vdrive.

Settings come from ``VDRIVE_*`` environment variables. Leaving
``VDRIVE_REMOTE_URL`` unset keeps the drive in process memory, which is how the
browser-cache location behaves in local use.
"""

import logging
import os
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from vdrive.schemas.address import PathAddress

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


class Settings(BaseModel):
    """Client settings"""
    home: str = "BrowserCache::"
    remote_url: Optional[str] = None
    remote_token: Optional[str] = None
    remote_timeout: float = 30.0
    page_size: int = Field(default=1000, gt=0)
    log_level: str = "INFO"

    @field_validator("home")
    @classmethod
    def _home_is_address(cls, value: str) -> str:
        return PathAddress.parse(value).render()

    @field_validator("log_level")
    @classmethod
    def _known_log_level(cls, value: str) -> str:
        level = value.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {value!r}")
        return level

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the process environment."""
        values = {}
        for field in cls.model_fields:
            raw = os.getenv(f"VDRIVE_{field.upper()}")
            if raw not in (None, ""):
                values[field] = raw
        return cls(**values)

    def home_address(self) -> PathAddress:
        return PathAddress.parse(self.home)


def setup_logging(level: str = "INFO"):
    """Configure root logging once for the process"""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)


settings = Settings.from_env()
