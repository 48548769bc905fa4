"""
Adapter core: result models, backend bases, and the degrading dispatcher.

Each service family exposes one capability interface implemented twice: a
managed backend that goes through the ManagedChannelClient and a direct
backend that talks to the service's REST API (or simulates it when no
credentials are configured). ProviderAdapter picks between them per call.
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping
from enum import StrEnum
from typing import Any, ClassVar

import requests
from pydantic import Field

from layr.adapters.channel import ManagedChannelClient
from layr.adapters.http import request_json
from layr.constants import ServiceFamily
from layr.exceptions import ChannelError, LayrError, ProviderError, ProvisioningError
from layr.logger import logger
from layr.models.base import LayrBaseModel
from layr.settings import LayrSettings
from layr.utils import run_with_timeout


class ChannelState(StrEnum):
    PRIMARY = "primary"
    DEGRADED = "degraded"


class AdapterResult(LayrBaseModel):
    """
    Common fields of every adapter result.

    Attributes:
        channel: "managed" or "direct", whichever produced the result.
        simulated: True when the direct backend had no credentials and fabricated the result.
    """

    channel: str = "direct"
    simulated: bool = False


class OperationResult(AdapterResult):
    success: bool = True
    details: dict[str, Any] = Field(default_factory=dict)


class WebhookEndpoint(LayrBaseModel):
    url: str
    events: tuple[str, ...] = ()


###############################################################################
# BACKENDS
###############################################################################


class ManagedBackend:
    """Shared plumbing for backends that go through the managed channel."""

    family: ClassVar[ServiceFamily]

    def __init__(self, channel: ManagedChannelClient):
        self.channel = channel

    def _call(self, operation: str, params: Mapping[str, Any] | None = None) -> dict[str, Any]:
        response = self.channel.execute(self.family, operation, params)
        if response.get("success") is False:
            raise ChannelError(
                f"{operation} reported failure: {response.get('error', 'no details')}", service=self.family
            )
        return response

    def _require(self, response: Mapping[str, Any], operation: str, *fields: str) -> dict[str, Any]:
        """Return the response payload, insisting that each of `fields` is present."""
        payload = response.get("result")
        if not isinstance(payload, Mapping):
            payload = response
        missing = [name for name in fields if not payload.get(name)]
        if missing:
            raise ChannelError(f"{operation} response is missing {', '.join(missing)}", service=self.family)
        return dict(payload)


class DirectBackend:
    """
    Shared plumbing for backends that call a service's REST API directly.

    The backend is `live` only when the service's credentials are configured;
    otherwise each operation logs what it would do and returns a simulated result.
    """

    family: ClassVar[ServiceFamily]
    base_url: ClassVar[str]
    error_class: ClassVar[type[ProviderError]] = ProvisioningError

    def __init__(
        self,
        settings: LayrSettings,
        session: requests.Session | None = None,
        timeout: float | None = None,
    ):
        self.settings = settings
        self.credentials = settings.credentials_for(self.family)
        self.timeout = timeout
        self._session = session

    @property
    def live(self) -> bool:
        return self.settings.is_service_configured(self.family)

    @property
    def session(self) -> requests.Session:
        if self._session is None:
            self._session = requests.Session()
        return self._session

    def auth_headers(self) -> dict[str, str]:
        return {}

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        headers = {**self.auth_headers(), **kwargs.pop("headers", {})}
        return request_json(
            self.session,
            method,
            f"{self.base_url}{path}",
            service=self.family,
            error_class=self.error_class,
            timeout=self.timeout,
            headers=headers,
            **kwargs,
        )

    def _simulate(self, action: str, **details: Any) -> None:
        logger.info("No %s credentials configured, simulating: %s %s", self.family, action, details or "")


###############################################################################
# DISPATCHER
###############################################################################


class ProviderAdapter(ABC):
    """
    Per-run dispatcher for one service family.

    Every operation first tries the managed backend, provided this adapter has
    not degraded and the channel currently reports the family available. Any
    managed failure, a timeout included, is logged as a warning and degrades the
    adapter for the rest of its life; the call is then served by the direct
    backend, which is created on first use. Direct failures propagate: Layr
    errors unchanged, anything else wrapped in the family's `error_class`.

    Args:
        channel: Shared managed channel client.
        settings: Credentials and timeouts; defaults are used when omitted.
        session: HTTP session handed to the direct backend (tests inject fakes here).
        timeout: Per-operation budget; defaults to `settings.timeout_for(family)`.
    """

    service_family: ClassVar[ServiceFamily]
    error_class: ClassVar[type[ProviderError]] = ProvisioningError

    def __init__(
        self,
        channel: ManagedChannelClient,
        settings: LayrSettings | None = None,
        session: requests.Session | None = None,
        timeout: float | None = None,
    ):
        self.channel = channel
        self.settings = settings or LayrSettings()
        self.session = session
        self.timeout = timeout if timeout is not None else self.settings.timeout_for(self.service_family)
        self.managed_channel_available = True
        self._managed = self.create_managed_backend()
        self._direct: Any = None

    @abstractmethod
    def create_managed_backend(self) -> Any:
        """Return the backend that routes through the managed channel."""

    @abstractmethod
    def create_direct_backend(self) -> Any:
        """Return the backend that calls the service directly."""

    @property
    def state(self) -> ChannelState:
        return ChannelState.PRIMARY if self.managed_channel_available else ChannelState.DEGRADED

    @property
    def direct_backend(self) -> Any:
        if self._direct is None:
            logger.debug("Initializing direct %s integration", self.service_family)
            self._direct = self.create_direct_backend()
        return self._direct

    def _dispatch(self, operation: str, *args: Any, **kwargs: Any) -> Any:
        family = self.service_family
        if self.managed_channel_available and self.channel.is_available(family):
            try:
                managed_call = getattr(self._managed, operation)
                return run_with_timeout(managed_call, self.timeout, *args, service=family, **kwargs)
            except Exception as e:
                logger.warning(
                    "Managed channel %s.%s failed, falling back to direct integration: %s", family, operation, e
                )
                self.managed_channel_available = False

        try:
            direct_call = getattr(self.direct_backend, operation)
            return run_with_timeout(direct_call, self.timeout, *args, service=family, **kwargs)
        except LayrError:
            raise
        except Exception as e:
            raise self.error_class(f"{operation} failed: {e}", service=family) from e
