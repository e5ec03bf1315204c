"""Runtime configuration for IdeaCanvas.

Process-wide values come from ``IDEACANVAS_*`` environment variables; per-project
view toggles live in the database ``settings`` table.
"""

import logging
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ideacanvas.generation import DEFAULT_TIMEOUT

logger = logging.getLogger(__name__)

ENV_PREFIX = "IDEACANVAS_"
DEFAULT_DATA_DIR = Path.home() / ".local" / "share" / "ideacanvas"
DB_FILENAME = "ideacanvas.db"


class Config(BaseSettings):
    """Process-wide settings."""

    data_dir: Path = Field(default_factory=lambda: DEFAULT_DATA_DIR)
    db_path: Optional[Path] = None  # defaults to data_dir / DB_FILENAME
    generation_url: Optional[str] = None  # None selects the offline generator
    generation_timeout: float = DEFAULT_TIMEOUT
    user_id: str = Field(default="local", validation_alias="IDEACANVAS_USER")
    log_level: str = "INFO"
    branch_labels_editable: bool = True

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_ignore_empty=True,
        populate_by_name=True,
        extra="ignore",
    )

    @field_validator("data_dir", "db_path", mode="after")
    @classmethod
    def _expand_path(cls, value: Optional[Path]) -> Optional[Path]:
        return value.expanduser() if value is not None else None

    @field_validator("generation_timeout")
    @classmethod
    def _positive_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError(f"{ENV_PREFIX}GENERATION_TIMEOUT must be positive")
        return value

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return str(value).strip().upper()

    @model_validator(mode="after")
    def _prepare_paths(self) -> "Config":
        self.data_dir.mkdir(parents=True, exist_ok=True)
        if self.db_path is None:
            self.db_path = self.data_dir / DB_FILENAME
        return self

    @property
    def log_dir(self) -> Path:
        return self.data_dir / "logs"


# ==================== Per-project settings ====================

class ViewSettings(BaseModel):
    """View toggles remembered for each project."""

    model_config = ConfigDict(extra="ignore")

    show_grid: bool = True
    auto_generate: bool = True

    def to_json(self) -> str:
        return self.model_dump_json()

    @classmethod
    def from_json(cls, data: Optional[str]) -> "ViewSettings":
        """Parse stored toggles; anything unreadable falls back to defaults."""
        if not data:
            return cls()
        try:
            return cls.model_validate_json(data)
        except ValidationError as exc:
            logger.warning("Ignoring unreadable view settings: %s", exc.errors()[0]["msg"])
            return cls()


def _settings_key(project_id: str) -> str:
    return f"view_settings:{project_id}"


def load_view_settings(db, project_id: str) -> ViewSettings:
    """Read a project's toggles from the ``settings`` table."""
    return ViewSettings.from_json(db.get_setting(_settings_key(project_id)))


def save_view_settings(db, project_id: str, settings: ViewSettings):
    db.set_setting(_settings_key(project_id), settings.to_json())
