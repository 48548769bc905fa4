import os
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

import yaml
from pydantic import Field, PrivateAttr, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from layr.constants import (
    Environment,
    LAYR_DEFAULT_DEPLOYMENT_TIMEOUT,
    LAYR_DEFAULT_LOGGER,
    LAYR_DEFAULT_MAX_BACKOFF,
    LAYR_DEFAULT_MAX_RETRIES,
    LAYR_DEFAULT_OUTPUT_DIR,
    LAYR_DEFAULT_PROVISIONING_TIMEOUT,
    LAYR_DEFAULT_RETRY_BACKOFF,
    LAYR_DEFAULT_SETTINGS_FILE,
    LAYR_DEFAULT_VERIFICATION_TIMEOUT,
    PLACEHOLDER_CREDENTIAL_VALUES,
    ServiceFamily,
)
from layr.exceptions import SettingsError

CREDENTIAL_FIELDS = (
    "vercel_token",
    "vercel_team_id",
    "supabase_access_token",
    "supabase_org_id",
    "supabase_url",
    "supabase_anon_key",
    "supabase_service_key",
    "clerk_publishable_key",
    "clerk_secret_key",
    "stripe_publishable_key",
    "stripe_secret_key",
    "stripe_webhook_secret",
)

# Which credential fields each direct integration needs before it stops simulating.
REQUIRED_CREDENTIALS: dict[ServiceFamily, tuple[str, ...]] = {
    ServiceFamily.VERCEL: ("vercel_token",),
    ServiceFamily.SUPABASE: ("supabase_access_token", "supabase_org_id"),
    ServiceFamily.CLERK: ("clerk_publishable_key", "clerk_secret_key"),
    ServiceFamily.STRIPE: ("stripe_publishable_key", "stripe_secret_key"),
}


class LayrSettings(BaseSettings):
    """
    Layr settings management using Pydantic.

    Settings are resolved with the following priority (highest to lowest):
    1. Keyword overrides passed to `LayrSettings.load()`
    2. Environment variables (prefixed with LAYR_)
    3. Values from the settings YAML file
    4. Default values defined in the model

    Environment variable examples:
    - LAYR_VERCEL_TOKEN=...
    - LAYR_MANAGED_CHANNEL_ENABLED=true
    - LAYR_MAX_RETRIES=5
    """

    model_config = SettingsConfigDict(
        env_prefix="LAYR_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    environment: Environment = Field(default=Environment.DEVELOPMENT, description="Deployment environment")
    log_level: str = Field(default=LAYR_DEFAULT_LOGGER["level"], description="Log level for run log files")
    log_dir: str = Field(default=LAYR_DEFAULT_LOGGER["directory"], description="Directory for run log files")

    managed_channel_enabled: bool = Field(
        default=False, description="Default availability of the managed channel for every service family"
    )
    managed_channels: dict[ServiceFamily, bool] = Field(
        default_factory=dict, description="Per-family managed channel availability overrides"
    )

    max_retries: int = Field(default=LAYR_DEFAULT_MAX_RETRIES, ge=1, le=10)
    retry_backoff: float = Field(default=LAYR_DEFAULT_RETRY_BACKOFF, ge=0, description="Base delay in seconds")
    max_backoff: float = Field(default=LAYR_DEFAULT_MAX_BACKOFF, ge=0, description="Delay cap in seconds")

    provisioning_timeout: float = Field(default=LAYR_DEFAULT_PROVISIONING_TIMEOUT, gt=0)
    deployment_timeout: float = Field(default=LAYR_DEFAULT_DEPLOYMENT_TIMEOUT, gt=0)
    verification_timeout: float = Field(default=LAYR_DEFAULT_VERIFICATION_TIMEOUT, gt=0)

    smoke_check: bool = Field(default=True, description="Probe the preview URL after a live deployment")
    output_dir: str = Field(default=LAYR_DEFAULT_OUTPUT_DIR, description="Where generated apps are placed")
    supabase_region: str = Field(default="us-east-1")

    vercel_token: str | None = None
    vercel_team_id: str | None = None
    supabase_access_token: str | None = None
    supabase_org_id: str | None = None
    supabase_url: str | None = None
    supabase_anon_key: str | None = None
    supabase_service_key: str | None = None
    clerk_publishable_key: str | None = None
    clerk_secret_key: str | None = None
    stripe_publishable_key: str | None = None
    stripe_secret_key: str | None = None
    stripe_webhook_secret: str | None = None

    _settings_file: str | None = PrivateAttr(default=None)

    @field_validator(*CREDENTIAL_FIELDS, mode="after")
    @classmethod
    def reject_placeholders(cls, v: str | None) -> str | None:
        """Treat empty strings as unset and refuse template placeholder values."""
        if v is None or not v.strip():
            return None
        if v.strip() in PLACEHOLDER_CREDENTIAL_VALUES:
            raise ValueError(f"contains placeholder value: {v}")
        return v.strip()

    @field_validator("supabase_url", mode="after")
    @classmethod
    def validate_url(cls, v: str | None) -> str | None:
        if v is None:
            return v
        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"must be a valid http(s) URL, got '{v}'")
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: Any) -> str:
        level = str(v).upper()
        if level == "WARN":
            level = "WARNING"
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR"):
            raise ValueError(f"Invalid log level: {v}")
        return level

    @classmethod
    def load(cls, settings_file: str | None = None, **overrides: Any) -> "LayrSettings":
        """
        Load settings from an optional YAML file, the environment, and overrides.

        Settings file resolution priority:
        1. Explicit settings_file parameter (must exist)
        2. LAYR_SETTINGS environment variable (must exist)
        3. "layr.yaml" in the current directory, only if present

        Args:
            settings_file: Path to a settings YAML file.
            **overrides: Values that win over both the file and the environment.

        Returns:
            A validated LayrSettings instance.

        Raises:
            SettingsError: If an explicitly requested file is missing or unreadable,
                or the resulting values fail validation.
        """
        explicit = settings_file or os.getenv("LAYR_SETTINGS")
        resolved = explicit or LAYR_DEFAULT_SETTINGS_FILE
        settings_path = Path(resolved).resolve()

        yaml_data: dict[str, Any] = {}
        if settings_path.exists():
            try:
                with settings_path.open() as f:
                    yaml_data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise SettingsError(f"Failed to load settings from {resolved}: {e}") from e
            if not isinstance(yaml_data, dict):
                raise SettingsError(
                    f"Settings file must contain a YAML dictionary, got {type(yaml_data).__name__}"
                )
        elif explicit:
            raise SettingsError(
                f"Settings file not found: {resolved}\nResolved to absolute path: {settings_path}"
            )

        # Environment variables beat YAML values, so only feed YAML keys the env does not set.
        env_keys = {key[len("LAYR_") :].lower() for key in os.environ if key.upper().startswith("LAYR_")}
        file_values = {k: v for k, v in yaml_data.items() if k.lower() not in env_keys}

        try:
            instance = cls(**{**file_values, **overrides})
        except ValidationError as e:
            errors = "; ".join(f"{'.'.join(map(str, err['loc']))}: {err['msg']}" for err in e.errors())
            raise SettingsError(f"Invalid settings: {errors}") from e

        if settings_path.exists():
            instance._settings_file = str(settings_path)
        return instance

    @property
    def settings_file(self) -> str | None:
        return self._settings_file

    def managed_channel_availability(self) -> dict[ServiceFamily, bool]:
        """Initial managed channel availability for each service family."""
        return {
            family: self.managed_channels.get(family, self.managed_channel_enabled) for family in ServiceFamily
        }

    def is_service_configured(self, family: ServiceFamily | str) -> bool:
        """Whether all credentials needed for a family's direct integration are present."""
        return all(getattr(self, name) for name in REQUIRED_CREDENTIALS[ServiceFamily(family)])

    def credentials_for(self, family: ServiceFamily | str) -> dict[str, str]:
        """Return the non-empty credential values relevant to a service family."""
        prefix = f"{ServiceFamily(family).value}_"
        return {
            name[len(prefix) :]: getattr(self, name)
            for name in CREDENTIAL_FIELDS
            if name.startswith(prefix) and getattr(self, name)
        }

    def timeout_for(self, family: ServiceFamily | str) -> float:
        """Deployment target calls get the deployment budget, everything else provisioning's."""
        if ServiceFamily(family) is ServiceFamily.VERCEL:
            return self.deployment_timeout
        return self.provisioning_timeout

    @property
    def as_dict(self) -> dict[str, Any]:
        """Settings as a dictionary with credentials masked."""
        data = self.model_dump(mode="json")
        for name in CREDENTIAL_FIELDS:
            if data.get(name):
                data[name] = "***"
        return data

    def __str__(self) -> str:
        return str(self.as_dict)
