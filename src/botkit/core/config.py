"""
Dynaconf-powered configuration loader with Pydantic validation.

The configuration service loads ``config.yaml`` and ``secrets.yaml`` from a
config directory (plus ``BOTKIT_`` environment overrides), validates them,
and hands the CLI the bot token, logging preferences, and the module
manifest. The ``bot()`` bootstrap itself never reads configuration.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from dynaconf import Dynaconf
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .contracts import ModuleConfig

CONFIG_FILENAMES = ("config.yaml", "secrets.yaml")
_REPO_ROOT = Path(__file__).resolve().parents[3]
DEFAULT_CONFIG_DIR = _REPO_ROOT / "config"


def _section(raw: dict[str, Any], key: str) -> dict[str, Any]:
    """Case-insensitive dictionary lookup helper."""
    value = raw.get(key) or raw.get(key.upper()) or raw.get(key.lower())
    if isinstance(value, dict):
        return value
    return {}


def _section_list(raw: dict[str, Any], key: str) -> list[dict[str, Any]]:
    value = raw.get(key) or raw.get(key.upper()) or raw.get(key.lower())
    if isinstance(value, list):
        return [item for item in value if isinstance(item, dict)]
    if isinstance(value, dict):
        return [value]
    return []


class ConfigError(RuntimeError):
    """Raised when configuration files are missing or invalid."""


class BotSettings(BaseModel):
    model_config = ConfigDict(extra="ignore")

    token: str | None = Field(default=None, description="Bot token, usually from secrets.yaml.")


class LoggingSettings(BaseModel):
    model_config = ConfigDict(extra="ignore")

    level: str = Field(default="INFO")
    file: Path | None = Field(default=None)
    max_mb: int = Field(default=10, gt=0)
    backup_count: int = Field(default=3, ge=0)

    @field_validator("level")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        return value.upper()

    @field_validator("file", mode="before")
    @classmethod
    def _coerce_path(cls, value: Any) -> Path | None:
        if value in (None, ""):
            return None
        return Path(value)


class ModuleManifestEntry(BaseModel):
    """One entry of the ``modules`` list."""

    model_config = ConfigDict(extra="ignore")

    module: str
    enabled: bool = Field(default=True)
    options: dict[str, Any] = Field(default_factory=dict)

    def to_module_config(self) -> ModuleConfig:
        return ModuleConfig(enabled=self.enabled, options=dict(self.options))


class ConfigSnapshot(BaseModel):
    """Validated view of the layered configuration."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    bot: BotSettings = Field(default_factory=BotSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    modules: list[ModuleManifestEntry] = Field(default_factory=list)

    def module_configs(self, module_name: str) -> list[ModuleConfig]:
        """Return every manifest configuration declared for ``module_name``."""
        return [
            entry.to_module_config() for entry in self.modules if entry.module == module_name
        ]

    @property
    def module_names(self) -> list[str]:
        """Module identifiers in manifest order, without duplicates."""
        seen: dict[str, None] = {}
        for entry in self.modules:
            seen.setdefault(entry.module, None)
        return list(seen)


class ConfigService:
    """Runtime facade for loading and validating configuration."""

    def __init__(
        self,
        *,
        config_dir: str | Path | None = None,
        settings: Dynaconf | None = None,
    ) -> None:
        self._config_dir = Path(config_dir) if config_dir else DEFAULT_CONFIG_DIR
        if settings is None:
            settings_files = [self._config_dir / name for name in CONFIG_FILENAMES]
            existing_files = [str(path) for path in settings_files if path.exists()]
            if not existing_files:
                raise ConfigError(
                    f"No configuration files found in {self._config_dir}. "
                    "Expected at least config.yaml."
                )
            settings = Dynaconf(
                envvar_prefix="BOTKIT",
                settings_files=existing_files,
                load_dotenv=True,
                environments=False,
            )
        self._settings = settings
        self._snapshot = self._build_snapshot()

    @property
    def snapshot(self) -> ConfigSnapshot:
        """Latest validated configuration snapshot."""
        return self._snapshot

    def refresh(self) -> ConfigSnapshot:
        """Reload configuration files and rebuild the snapshot."""
        self._settings.reload()
        self._snapshot = self._build_snapshot()
        return self._snapshot

    def module_configs_for(self, module_name: str) -> list[ModuleConfig]:
        return self._snapshot.module_configs(module_name)

    def _build_snapshot(self) -> ConfigSnapshot:
        raw = self._settings.as_dict()
        data = {
            "bot": _section(raw, "bot"),
            "logging": _section(raw, "logging"),
            "modules": _section_list(raw, "modules"),
        }
        try:
            return ConfigSnapshot.model_validate(data)
        except ValidationError as exc:
            raise ConfigError("Configuration validation failed") from exc


__all__ = [
    "BotSettings",
    "ConfigError",
    "ConfigService",
    "ConfigSnapshot",
    "LoggingSettings",
    "ModuleManifestEntry",
]
