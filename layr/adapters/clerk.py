from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from typing import Any, Literal

from layr.adapters.base import (
    AdapterResult,
    DirectBackend,
    ManagedBackend,
    OperationResult,
    ProviderAdapter,
    WebhookEndpoint,
)
from layr.constants import ServiceFamily
from layr.exceptions import ProvisioningError

AppType = Literal["spa", "nextjs", "remix", "express"]


class ClerkApp(AdapterResult):
    app_id: str
    publishable_key: str
    secret_key: str


class ClerkBackend(ABC):
    """Capability interface of the identity provider."""

    @abstractmethod
    def create_app(self, name: str, app_type: AppType = "nextjs") -> ClerkApp: ...

    @abstractmethod
    def configure_auth(self, settings: Mapping[str, Any]) -> OperationResult: ...

    @abstractmethod
    def setup_webhooks(self, webhooks: Sequence[WebhookEndpoint]) -> OperationResult: ...

    @abstractmethod
    def configure_user_metadata(self, schema: Mapping[str, Any]) -> OperationResult: ...

    @abstractmethod
    def setup_organizations(self, settings: Mapping[str, Any]) -> OperationResult: ...


class ManagedClerkBackend(ManagedBackend, ClerkBackend):
    family = ServiceFamily.CLERK

    def create_app(self, name: str, app_type: AppType = "nextjs") -> ClerkApp:
        response = self._call("createApp", {"name": name, "type": app_type})
        data = self._require(response, "createApp", "appId", "publishableKey", "secretKey")
        return ClerkApp(
            app_id=data["appId"],
            publishable_key=data["publishableKey"],
            secret_key=data["secretKey"],
            channel="managed",
        )

    def configure_auth(self, settings: Mapping[str, Any]) -> OperationResult:
        self._call("configureAuth", dict(settings))
        return OperationResult(channel="managed", details=dict(settings))

    def setup_webhooks(self, webhooks: Sequence[WebhookEndpoint]) -> OperationResult:
        self._call("setupWebhooks", {"webhooks": [hook.to_dict() for hook in webhooks]})
        return OperationResult(channel="managed", details={"count": len(webhooks)})

    def configure_user_metadata(self, schema: Mapping[str, Any]) -> OperationResult:
        self._call("configureUserMetadata", dict(schema))
        return OperationResult(channel="managed")

    def setup_organizations(self, settings: Mapping[str, Any]) -> OperationResult:
        self._call("setupOrganizations", dict(settings))
        return OperationResult(channel="managed", details=dict(settings))


class DirectClerkBackend(DirectBackend, ClerkBackend):
    """
    Clerk Backend API; see https://clerk.com/docs/reference/backend-api.

    Clerk applications are created in the dashboard, so the live `create_app`
    binds to the instance the configured keys belong to.
    """

    family = ServiceFamily.CLERK
    base_url = "https://api.clerk.com/v1"
    error_class = ProvisioningError

    def auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.credentials['secret_key']}"}

    def create_app(self, name: str, app_type: AppType = "nextjs") -> ClerkApp:
        if not self.live:
            self._simulate("create app", name=name, type=app_type)
            return ClerkApp(
                app_id=f"app_{name}",
                publishable_key=f"pk_test_{name}",
                secret_key=f"sk_test_{name}",
                simulated=True,
            )

        # Fails with 401 when the secret key is wrong.
        self._request("GET", "/jwks")
        return ClerkApp(
            app_id=f"app_{name}",
            publishable_key=self.credentials["publishable_key"],
            secret_key=self.credentials["secret_key"],
        )

    def configure_auth(self, settings: Mapping[str, Any]) -> OperationResult:
        if not self.live:
            self._simulate("configure auth", settings=dict(settings))
            return OperationResult(simulated=True, details=dict(settings))

        self._request("PATCH", "/instance", json=dict(settings))
        return OperationResult(details=dict(settings))

    def setup_webhooks(self, webhooks: Sequence[WebhookEndpoint]) -> OperationResult:
        if not self.live:
            self._simulate("set up webhooks", urls=[hook.url for hook in webhooks])
            return OperationResult(simulated=True, details={"count": len(webhooks)})

        # Clerk delivers webhooks through Svix; endpoints are then managed from the returned portal URL.
        data = self._request("POST", "/webhooks/svix")
        return OperationResult(details={"count": len(webhooks), "svix_url": data.get("svix_url", "")})

    def configure_user_metadata(self, schema: Mapping[str, Any]) -> OperationResult:
        # Metadata is schemaless on Clerk's side; there is nothing to push.
        if not self.live:
            self._simulate("configure user metadata", keys=sorted(schema))
            return OperationResult(simulated=True)
        return OperationResult(details={"keys": sorted(schema)})

    def setup_organizations(self, settings: Mapping[str, Any]) -> OperationResult:
        if not self.live:
            self._simulate("set up organizations", settings=dict(settings))
            return OperationResult(simulated=True, details=dict(settings))

        body = {"enabled": settings.get("enabled", True)}
        if "max_members_per_org" in settings:
            body["max_allowed_memberships"] = settings["max_members_per_org"]
        self._request("PATCH", "/instance/organization_settings", json=body)
        return OperationResult(details=dict(settings))


class ClerkAdapter(ProviderAdapter):
    service_family = ServiceFamily.CLERK
    error_class = ProvisioningError

    def create_managed_backend(self) -> ManagedClerkBackend:
        return ManagedClerkBackend(self.channel)

    def create_direct_backend(self) -> DirectClerkBackend:
        return DirectClerkBackend(self.settings, session=self.session, timeout=self.timeout)

    def create_app(self, name: str, app_type: AppType = "nextjs") -> ClerkApp:
        return self._dispatch("create_app", name, app_type)

    def configure_auth(self, settings: Mapping[str, Any]) -> OperationResult:
        return self._dispatch("configure_auth", settings)

    def setup_webhooks(self, webhooks: Sequence[WebhookEndpoint]) -> OperationResult:
        return self._dispatch("setup_webhooks", list(webhooks))

    def configure_user_metadata(self, schema: Mapping[str, Any]) -> OperationResult:
        return self._dispatch("configure_user_metadata", schema)

    def setup_organizations(self, settings: Mapping[str, Any]) -> OperationResult:
        return self._dispatch("setup_organizations", settings)
