"""User settings (domain, extension, key, auto-answer) and their persistence.

The call pipeline only ever reads a ``Settings`` snapshot; writing happens
from the separate ``configure`` flow through ``SettingsStore.save``.

The file is a flat YAML mapping::

    domain: pbx.example.com
    extension: '101'
    key: abc123
    auto_answer: false
"""

import os
import tempfile
from pathlib import Path
from typing import Any

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from clicktocall.errors import NotConfigured, PersistenceError
from clicktocall.paths import get_settings_path

REQUIRED_FIELDS: tuple[str, ...] = ("domain", "extension", "key")


class Settings(BaseModel):
    """Immutable snapshot of the four user settings."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True, coerce_numbers_to_str=True, extra="ignore")

    domain: str = Field(default="", description="PBX hostname, e.g. pbx.example.com")
    extension: str = Field(default="", description="SIP extension calls are originated from")
    key: SecretStr = Field(default=SecretStr(""), description="PBX API key")
    auto_answer: bool = Field(default=False, description="Ask the PBX to auto-answer the originating leg")

    def missing_fields(self) -> list[str]:
        """Names of required fields that are empty."""
        values = {"domain": self.domain, "extension": self.extension, "key": self.key.get_secret_value()}
        return [name for name in REQUIRED_FIELDS if not values[name]]

    @property
    def is_complete(self) -> bool:
        return not self.missing_fields()

    def to_record(self) -> dict[str, Any]:
        """Plain mapping as written to disk (key in clear text)."""
        return {
            "domain": self.domain,
            "extension": self.extension,
            "key": self.key.get_secret_value(),
            "auto_answer": self.auto_answer,
        }


class SettingsStore:
    """Load and save ``Settings`` as YAML in a user-scoped location.

    Args:
        path: Settings file; defaults to ``get_settings_path()``.
    """

    def __init__(self, path: str | Path | None = None) -> None:
        self.path = Path(path) if path is not None else get_settings_path()
        self._log = logger.bind(classname="SettingsStore")

    def exists(self) -> bool:
        return self.path.is_file()

    def load(self) -> Settings:
        """Read the saved settings.

        Returns:
            The stored settings as an immutable snapshot.

        Raises:
            NotConfigured: If nothing was saved yet, or the file cannot be
                read or parsed.
        """
        if not self.path.is_file():
            raise NotConfigured(f"No settings saved at {self.path}")

        try:
            data = YAML(typ="safe").load(self.path)
        except (OSError, YAMLError) as exc:
            self._log.warning(f"Cannot read settings file {self.path}: {exc}")
            raise NotConfigured(f"Settings file {self.path} is unreadable: {exc}") from exc

        if not isinstance(data, dict):
            raise NotConfigured(f"Settings file {self.path} does not contain a mapping")

        try:
            settings = Settings.model_validate(
                {k: ("" if v is None else v) for k, v in data.items() if isinstance(k, str)}
            )
        except ValidationError as exc:
            self._log.warning(f"Invalid settings in {self.path}: {exc}")
            raise NotConfigured(f"Settings file {self.path} is invalid: {exc}") from exc

        self._log.debug(f"Loaded settings from {self.path}: {settings!r}")
        return settings

    def load_or_default(self) -> Settings:
        """Like ``load`` but returns empty defaults when nothing usable is stored."""
        try:
            return self.load()
        except NotConfigured:
            return Settings()

    def save(self, settings: Settings) -> Path:
        """Durably write *settings*, replacing any previous file atomically.

        The directory is created with mode 0700 and the file with mode 0600
        since it holds the API key.

        Returns:
            The path written.

        Raises:
            PersistenceError: On any filesystem error.
        """
        tmp_name: str | None = None
        try:
            self.path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=".preferences-", suffix=".tmp", dir=self.path.parent)
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                yaml = YAML()
                yaml.default_flow_style = False
                yaml.dump(settings.to_record(), fh)
            os.chmod(tmp_name, 0o600)
            os.replace(tmp_name, self.path)
            tmp_name = None
        except OSError as exc:
            raise PersistenceError(f"Cannot save settings to {self.path}: {exc}") from exc
        finally:
            if tmp_name:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    pass

        self._log.info(f"Settings saved to {self.path}")
        return self.path
