"""Deployment configuration: PBX API template, timeouts, notifications, logging.

Unlike the user ``Settings`` (domain / extension / key), these values
describe *how* to talk to a given PBX and are rarely touched.

Sources, highest priority first:
    1. Overrides passed to ``load_app_config`` (CLI arguments).
    2. Environment variables with ``CLICKTOCALL_`` prefix, nested fields
       separated by ``__`` (e.g. ``CLICKTOCALL_API__PATH``).
    3. YAML file at ``CLICKTOCALL_CONFIG_PATH`` or
       ``<user config dir>/click-to-call/config.yaml``.
    4. Defaults below (FusionPBX ``click_to_call.php``).

Example ``config.yaml``::

    timeout_seconds: 3
    api:
      path: /app/click_to_call/click_to_call.php
      params:
        src: "{extension}"
        dest: "{number}"
        key: "{key}"
      auto_answer_param: auto_answer
"""

import string
from pathlib import Path
from typing import Any, ClassVar, Tuple, Type

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import (
    BaseSettings,
    DotEnvSettingsSource,
    EnvSettingsSource,
    InitSettingsSource,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

from clicktocall.paths import get_config_path

PLACEHOLDERS: frozenset[str] = frozenset({"number", "extension", "key"})

_FUSIONPBX_PARAMS: dict[str, str] = {
    "src_cid_name": "{number}",
    "src_cid_number": "{number}",
    "dest_cid_name": "{number}",
    "dest_cid_number": "{number}",
    "src": "{extension}",
    "dest": "{number}",
    "rec": "",
    "ringback": "us-ring",
    "key": "{key}",
}


def placeholders_of(template: str) -> set[str]:
    """Names of the replacement fields in a ``str.format`` template, ignoring conversions and format specs."""
    return {field_name for _, field_name, _, _ in string.Formatter().parse(template) if field_name is not None}


class ApiTemplate(BaseModel):
    """Path and query-parameter template of the PBX click-to-call endpoint."""

    path: str = Field(default="/app/click_to_call/click_to_call.php", description="Endpoint path below the domain")
    params: dict[str, str] = Field(
        default_factory=lambda: dict(_FUSIONPBX_PARAMS),
        description="Query parameter name -> value template ({number}, {extension}, {key})",
    )
    auto_answer_param: str = Field(default="auto_answer", min_length=1, description="Parameter added when auto-answer is on")
    auto_answer_value: str = Field(default="true", description="Value of the auto-answer parameter")

    @field_validator("path")
    @classmethod
    def _leading_slash(cls, v: str) -> str:
        v = v.strip()
        return v if v.startswith("/") else f"/{v}"

    @field_validator("params")
    @classmethod
    def _known_placeholders(cls, v: dict[str, str]) -> dict[str, str]:
        for name, template in v.items():
            for field_name in sorted(placeholders_of(template)):
                if field_name not in PLACEHOLDERS:
                    raise ValueError(
                        f"Parameter '{name}' uses unknown placeholder '{{{field_name}}}' "
                        f"(allowed: {', '.join(sorted(PLACEHOLDERS))})"
                    )
        return v


class AppConfig(BaseSettings):
    """Top-level deployment configuration."""

    model_config: ClassVar[SettingsConfigDict] = SettingsConfigDict(
        env_prefix="CLICKTOCALL_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
        yaml_file_encoding="utf-8",
    )

    timeout_seconds: float = Field(default=5.0, gt=0, le=120, description="HTTP timeout for the origination request")
    verify_tls: bool = Field(default=True, description="Verify the PBX TLS certificate")
    user_agent: str = Field(default="click-to-call", min_length=1, description="User-Agent header")
    notifications: bool = Field(default=True, description="Show a desktop notification with the outcome")
    log_file: Path | None = Field(default=None, description="Additional rotating log file (handler runs without a terminal)")
    api: ApiTemplate = Field(default_factory=ApiTemplate)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: InitSettingsSource,  # type: ignore
        env_settings: EnvSettingsSource,  # type: ignore
        dotenv_settings: DotEnvSettingsSource,  # type: ignore
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        return init_settings, env_settings, YamlConfigSettingsSource(settings_cls, yaml_file=get_config_path())


def load_app_config(overrides: dict[str, Any] | None = None) -> AppConfig:
    """Build ``AppConfig`` from YAML, environment and non-``None`` *overrides*."""
    data = {k: v for k, v in (overrides or {}).items() if v is not None}
    return AppConfig(**data)
