import threading
from collections.abc import Callable, Mapping
from typing import Any

from layr.constants import ServiceFamily
from layr.exceptions import ChannelError, ChannelUnavailableError
from layr.logger import logger
from layr.settings import LayrSettings
from layr.utils import run_with_timeout

# Performs one managed call: (family, operation, params) -> response mapping.
Transport = Callable[[ServiceFamily, str, dict[str, Any]], Mapping[str, Any]]


class ManagedChannelClient:
    """
    Gateway to the managed channel of every service family.

    The client only knows which families are reachable and how to hand a call
    to the transport. It never retries and never falls back; both are the
    adapter's job. Without a transport it answers with an echo envelope, which
    carries no service-specific fields.

    Args:
        availability: Initial availability per family; unlisted families are unavailable.
        transport: Callable performing the actual managed call.
    """

    def __init__(
        self,
        availability: Mapping[ServiceFamily | str, bool] | None = None,
        transport: Transport | None = None,
    ):
        self._lock = threading.Lock()
        self._availability: dict[ServiceFamily, bool] = dict.fromkeys(ServiceFamily, False)
        for family, available in (availability or {}).items():
            self._availability[ServiceFamily(family)] = bool(available)
        self.transport = transport

    @classmethod
    def from_settings(cls, settings: LayrSettings, transport: Transport | None = None) -> "ManagedChannelClient":
        return cls(availability=settings.managed_channel_availability(), transport=transport)

    def is_available(self, family: ServiceFamily | str) -> bool:
        with self._lock:
            return self._availability[ServiceFamily(family)]

    def set_availability(self, family: ServiceFamily | str, available: bool) -> None:
        with self._lock:
            self._availability[ServiceFamily(family)] = available

    def availability(self) -> dict[ServiceFamily, bool]:
        with self._lock:
            return dict(self._availability)

    def execute(
        self,
        family: ServiceFamily | str,
        operation: str,
        params: Mapping[str, Any] | None = None,
        timeout: float | None = None,
    ) -> dict[str, Any]:
        """
        Run one managed operation.

        Raises:
            ChannelUnavailableError: If the family's channel is not available.
            ChannelError: If the transport answers with something other than a mapping.
            OperationTimeoutError: If the transport exceeds `timeout`.
        """
        family = ServiceFamily(family)
        if not self.is_available(family):
            raise ChannelUnavailableError(f"Managed channel for {family} is not available", service=family)

        payload = dict(params or {})
        logger.debug("Managed channel call: %s.%s", family, operation)

        if self.transport is None:
            return {
                "success": True,
                "service": family.value,
                "command": operation,
                "params": payload,
                "result": f"Echo from the {family} managed channel",
            }

        response = run_with_timeout(self.transport, timeout, family, operation, payload, service=family)
        if not isinstance(response, Mapping):
            raise ChannelError(
                f"Malformed response for {operation}: expected a mapping, got {type(response).__name__}",
                service=family,
            )
        return dict(response)
