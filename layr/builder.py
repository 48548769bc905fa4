from collections.abc import Callable
from pathlib import Path
from typing import Any

import requests
from pydantic import ValidationError

from layr.adapters.channel import ManagedChannelClient, Transport
from layr.exceptions import ConfigurationError, SettingsError
from layr.pipeline import LayrPipeline
from layr.processors import PipelineProcessor
from layr.retry import RetryPolicy
from layr.settings import LayrSettings


class LayrPipelineBuilder:
    """
    Builder class for constructing LayrPipeline objects with a fluent interface.

    Usage Examples:
        # Basic usage
        pipeline = LayrPipelineBuilder().with_settings_path("layr.yaml").build()

        # Tests and embedding
        pipeline = (
            LayrPipelineBuilder()
            .with_settings_object(settings)
            .with_channel_transport(fake_transport)
            .with_processors([])
            .with_retry(max_attempts=2, base_delay=0)
            .with_sleep(lambda _: None)
            .build()
        )

    Order of preference for the settings object:
      1. with_settings_object()
      2. with_settings_path()
      3. LayrSettings.load() at build time

    Settings overrides given through with_settings_overrides() are applied on
    top of whichever settings source wins.
    """

    def __init__(self):
        self._settings: LayrSettings | None = None
        self._settings_overrides: dict[str, Any] = {}
        self._channel: ManagedChannelClient | None = None
        self._transport: Transport | None = None
        self._processors: list[PipelineProcessor] | None = None
        self._retry: dict[str, Any] = {}
        self._http_session: requests.Session | None = None
        self._sleep: Callable[[float], None] | None = None
        self._show_overview = False

    def with_settings_object(self, settings_object: LayrSettings) -> "LayrPipelineBuilder":
        self._settings = settings_object
        return self

    def with_settings_path(self, settings_path: str | Path) -> "LayrPipelineBuilder":
        """
        Load LayrSettings from a YAML file.

        This only takes effect if a settings object has not been set yet.

        Raises:
            ConfigurationError: If the file cannot be loaded.
        """
        if not self._settings:
            try:
                self._settings = LayrSettings.load(settings_file=str(settings_path))
            except SettingsError as e:
                raise ConfigurationError(f"Failed to load settings from '{settings_path}': {e}") from e
        return self

    def with_settings_overrides(self, **overrides: Any) -> "LayrPipelineBuilder":
        self._settings_overrides.update(overrides)
        return self

    def with_channel(self, channel: ManagedChannelClient) -> "LayrPipelineBuilder":
        self._channel = channel
        return self

    def with_channel_transport(self, transport: Transport) -> "LayrPipelineBuilder":
        """Use `transport` for managed calls; availability still comes from settings."""
        self._transport = transport
        return self

    def with_processors(self, processors: list[PipelineProcessor]) -> "LayrPipelineBuilder":
        self._processors = processors
        return self

    def with_retry(
        self,
        max_attempts: int | None = None,
        base_delay: float | None = None,
        max_delay: float | None = None,
    ) -> "LayrPipelineBuilder":
        """Override retry parameters; anything left as None comes from settings."""
        values = {"max_attempts": max_attempts, "base_delay": base_delay, "max_delay": max_delay}
        self._retry.update({key: value for key, value in values.items() if value is not None})
        return self

    def with_http_session(self, session: requests.Session) -> "LayrPipelineBuilder":
        self._http_session = session
        return self

    def with_sleep(self, sleep: Callable[[float], None]) -> "LayrPipelineBuilder":
        self._sleep = sleep
        return self

    def with_overview(self, show: bool = True) -> "LayrPipelineBuilder":
        self._show_overview = show
        return self

    def build(self) -> LayrPipeline:
        """Build and return a LayrPipeline from the collected configuration."""
        settings = self._settings or LayrSettings.load()
        if self._settings_overrides:
            try:
                settings = LayrSettings(**{**settings.model_dump(), **self._settings_overrides})
            except ValidationError as e:
                raise SettingsError(f"Invalid settings override: {e}") from e

        channel = self._channel
        if channel is None and self._transport is not None:
            channel = ManagedChannelClient.from_settings(settings, transport=self._transport)

        retry_policy = RetryPolicy(
            max_attempts=self._retry.get("max_attempts", settings.max_retries),
            base_delay=self._retry.get("base_delay", settings.retry_backoff),
            max_delay=self._retry.get("max_delay", settings.max_backoff),
        )

        kwargs: dict[str, Any] = {}
        if self._sleep is not None:
            kwargs["sleep"] = self._sleep

        return LayrPipeline(
            settings=settings,
            channel=channel,
            processors=self._processors,
            retry_policy=retry_policy,
            http_session=self._http_session,
            show_overview=self._show_overview,
            **kwargs,
        )
