# ditakeys/config_manager.py
"""Settings management for the key space engine."""

from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Union
from dataclasses import replace
from pathlib import Path
import logging
import os

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .models.types import KeySpaceSettings
from .utils.logger import DITALogger

SettingsProvider = Callable[[], Awaitable[Mapping[str, Any]]]

DEFAULT_CONFIG_FILE = "ditakeys.yml"
CONFIG_SECTION = "ditakeys"

ENV_VARS: Dict[str, str] = {
    "DITAKEYS_CACHE_TTL_MINUTES": "key_space_cache_ttl_minutes",
    "DITAKEYS_MAX_LINK_MATCHES": "max_link_matches",
    "DITAKEYS_MAX_KEY_SPACES": "max_key_spaces",
}


class SettingsOverrides(BaseModel):
    """
    One layer of settings as read from a source.
    Accepts camelCase aliases or field names; unset fields leave the layer below untouched.
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    key_space_cache_ttl_minutes: Optional[float] = Field(
        default=None, alias="keySpaceCacheTtlMinutes", gt=0, allow_inf_nan=False
    )
    max_link_matches: Optional[int] = Field(default=None, alias="maxLinkMatches", gt=0)
    max_key_spaces: Optional[int] = Field(default=None, alias="maxKeySpaces", gt=0)


class ConfigManager:
    """
    Resolves KeySpaceSettings from layered sources.
    Precedence, lowest first: defaults, YAML file, environment, settings provider.
    """

    def __init__(
        self,
        config_path: Optional[Union[str, Path]] = None,
        settings_provider: Optional[SettingsProvider] = None,
        env_file: Optional[Union[str, Path]] = None,
        logger: Optional[DITALogger] = None
    ):
        self.logger = logger or logging.getLogger(__name__)
        self.config_path = Path(config_path) if config_path else Path.cwd() / DEFAULT_CONFIG_FILE
        self.settings_provider = settings_provider
        self._settings = KeySpaceSettings()

        load_dotenv(env_file or Path.cwd() / ".env", override=False)

    @property
    def settings(self) -> KeySpaceSettings:
        """Most recently loaded settings (defaults before the first load)."""
        return self._settings

    def load_static(self) -> KeySpaceSettings:
        """Load defaults, YAML file and environment without awaiting the provider."""
        settings = KeySpaceSettings()
        settings = self._apply(settings, self._load_yaml(), source=str(self.config_path))
        settings = self._apply(settings, self._load_env(), source="environment")
        self._settings = settings
        return settings

    async def load(self) -> KeySpaceSettings:
        """
        Load settings from every source.
        A failing provider keeps the static settings; nothing here raises.
        """
        settings = self.load_static()

        if self.settings_provider is not None:
            try:
                provided = await self.settings_provider()
            except Exception as e:
                self.logger.warning(f"Settings not available, using defaults: {str(e)}")
                provided = None

            if provided:
                settings = self._apply(settings, provided, source="settings provider")

        self._settings = settings
        return settings

    def _load_yaml(self) -> Dict[str, Any]:
        if not self.config_path.is_file():
            return {}

        try:
            with open(self.config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            self.logger.warning(f"Error loading config file {self.config_path}: {str(e)}")
            return {}

        if not isinstance(data, dict):
            self.logger.warning(f"Ignoring config file {self.config_path}: expected a mapping")
            return {}

        section = data.get(CONFIG_SECTION, data)
        return section if isinstance(section, dict) else {}

    def _load_env(self) -> Dict[str, Any]:
        return {
            field_name: os.environ[env_var]
            for env_var, field_name in ENV_VARS.items()
            if os.environ.get(env_var)
        }

    def _apply(
        self,
        settings: KeySpaceSettings,
        values: Mapping[str, Any],
        source: str
    ) -> KeySpaceSettings:
        """Overlay recognized, valid values onto settings."""
        overrides = self._validate(dict(values), source)
        updates = overrides.model_dump(exclude_none=True)
        return replace(settings, **updates) if updates else settings

    def _validate(self, values: Dict[str, Any], source: str) -> SettingsOverrides:
        """Validate one layer; invalid entries are logged and dropped, the rest kept."""
        try:
            return SettingsOverrides.model_validate(values)
        except ValidationError as e:
            rejected = set()
            for error in e.errors():
                name = error["loc"][0] if error["loc"] else None
                rejected.add(name)
                self.logger.warning(
                    f"Invalid value for {name} from {source}: "
                    f"{error.get('input')!r} ({error['msg']})"
                )

        remaining = {name: value for name, value in values.items() if name not in rejected}
        try:
            return SettingsOverrides.model_validate(remaining)
        except ValidationError as e:
            self.logger.warning(f"Ignoring settings from {source}: {str(e)}")
            return SettingsOverrides()
