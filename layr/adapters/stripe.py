import uuid
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from typing import Any, Literal

from pydantic import Field

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
from layr.models.base import LayrBaseModel

MOCK_CHECKOUT_URL = "https://checkout.stripe.com/test"


class ProductSpec(LayrBaseModel):
    name: str
    description: str = ""
    metadata: dict[str, str] = Field(default_factory=dict)


class PriceSpec(LayrBaseModel):
    """A price in the currency's smallest unit; `interval` None means one-time."""

    product_id: str
    unit_amount: int = Field(ge=0)
    currency: str = "usd"
    interval: Literal["day", "week", "month", "year"] | None = "month"
    interval_count: int = 1


class CheckoutSpec(LayrBaseModel):
    line_items: tuple[dict[str, Any], ...]
    mode: Literal["payment", "subscription"] = "subscription"
    success_url: str
    cancel_url: str
    customer_email: str | None = None


class PortalSpec(LayrBaseModel):
    headline: str | None = None
    allow_cancel: bool = False
    allow_pause: bool = False


class StripeProduct(AdapterResult):
    product_id: str
    name: str
    description: str = ""


class StripePrice(AdapterResult):
    price_id: str
    product_id: str
    unit_amount: int
    currency: str


class CheckoutSession(AdapterResult):
    session_id: str
    url: str


def product_id_for(name: str) -> str:
    return f"prod_{'_'.join(name.lower().split())}"


def encode_form(data: Mapping[str, Any], prefix: str = "") -> list[tuple[str, str]]:
    """Flatten nested data into Stripe's bracketed form encoding (a[b][0]=c)."""
    pairs: list[tuple[str, str]] = []
    for key, value in data.items():
        name = f"{prefix}[{key}]" if prefix else str(key)
        if value is None:
            continue
        if isinstance(value, Mapping):
            pairs.extend(encode_form(value, name))
        elif isinstance(value, list | tuple):
            for index, item in enumerate(value):
                item_name = f"{name}[{index}]"
                if isinstance(item, Mapping):
                    pairs.extend(encode_form(item, item_name))
                else:
                    pairs.append((item_name, _form_value(item)))
        else:
            pairs.append((name, _form_value(value)))
    return pairs


def _form_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class StripeBackend(ABC):
    """Capability interface of the payments provider."""

    @abstractmethod
    def create_products(self, products: Sequence[ProductSpec]) -> list[StripeProduct]: ...

    @abstractmethod
    def create_prices(self, prices: Sequence[PriceSpec]) -> list[StripePrice]: ...

    @abstractmethod
    def setup_webhooks(self, endpoints: Sequence[WebhookEndpoint]) -> OperationResult: ...

    @abstractmethod
    def create_checkout_session(self, session: CheckoutSpec) -> CheckoutSession: ...

    @abstractmethod
    def setup_customer_portal(self, portal: PortalSpec) -> OperationResult: ...


class ManagedStripeBackend(ManagedBackend, StripeBackend):
    family = ServiceFamily.STRIPE

    def create_products(self, products: Sequence[ProductSpec]) -> list[StripeProduct]:
        response = self._call("createProducts", {"products": [p.to_dict() for p in products]})
        data = self._require(response, "createProducts", "products")
        return [
            StripeProduct(
                product_id=item["id"],
                name=item["name"],
                description=item.get("description") or "",
                channel="managed",
            )
            for item in data["products"]
        ]

    def create_prices(self, prices: Sequence[PriceSpec]) -> list[StripePrice]:
        response = self._call("createPrices", {"prices": [p.to_dict() for p in prices]})
        data = self._require(response, "createPrices", "prices")
        return [
            StripePrice(
                price_id=item["id"],
                product_id=item["productId"],
                unit_amount=item["unitAmount"],
                currency=item["currency"],
                channel="managed",
            )
            for item in data["prices"]
        ]

    def setup_webhooks(self, endpoints: Sequence[WebhookEndpoint]) -> OperationResult:
        self._call("setupWebhooks", {"endpoints": [e.to_dict() for e in endpoints]})
        return OperationResult(channel="managed", details={"count": len(endpoints)})

    def create_checkout_session(self, session: CheckoutSpec) -> CheckoutSession:
        response = self._call("createCheckoutSession", session.to_dict())
        data = self._require(response, "createCheckoutSession", "sessionId")
        return CheckoutSession(session_id=data["sessionId"], url=data.get("url", ""), channel="managed")

    def setup_customer_portal(self, portal: PortalSpec) -> OperationResult:
        self._call("setupCustomerPortal", portal.to_dict())
        return OperationResult(channel="managed")


class DirectStripeBackend(DirectBackend, StripeBackend):
    """Stripe REST API (form-encoded); see https://docs.stripe.com/api."""

    family = ServiceFamily.STRIPE
    base_url = "https://api.stripe.com/v1"
    error_class = ProvisioningError

    def auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.credentials['secret_key']}"}

    def _post(self, path: str, data: Mapping[str, Any]) -> Any:
        return self._request("POST", path, data=encode_form(data))

    def create_products(self, products: Sequence[ProductSpec]) -> list[StripeProduct]:
        if not self.live:
            self._simulate("create products", names=[p.name for p in products])
            return [
                StripeProduct(
                    product_id=product_id_for(p.name), name=p.name, description=p.description, simulated=True
                )
                for p in products
            ]

        created = []
        for product in products:
            body = {"name": product.name, "description": product.description or None, "metadata": product.metadata}
            data = self._post("/products", body)
            created.append(
                StripeProduct(product_id=data["id"], name=data["name"], description=data.get("description") or "")
            )
        return created

    def create_prices(self, prices: Sequence[PriceSpec]) -> list[StripePrice]:
        if not self.live:
            self._simulate("create prices", products=[p.product_id for p in prices])
            return [
                StripePrice(
                    price_id=f"price_{p.product_id.removeprefix('prod_')}_{p.unit_amount}",
                    product_id=p.product_id,
                    unit_amount=p.unit_amount,
                    currency=p.currency,
                    simulated=True,
                )
                for p in prices
            ]

        created = []
        for price in prices:
            body: dict[str, Any] = {
                "product": price.product_id,
                "unit_amount": price.unit_amount,
                "currency": price.currency,
            }
            if price.interval:
                body["recurring"] = {"interval": price.interval, "interval_count": price.interval_count}
            data = self._post("/prices", body)
            created.append(
                StripePrice(
                    price_id=data["id"],
                    product_id=price.product_id,
                    unit_amount=price.unit_amount,
                    currency=price.currency,
                )
            )
        return created

    def setup_webhooks(self, endpoints: Sequence[WebhookEndpoint]) -> OperationResult:
        if not self.live:
            self._simulate("set up webhooks", urls=[e.url for e in endpoints])
            return OperationResult(simulated=True, details={"count": len(endpoints)})

        for endpoint in endpoints:
            self._post("/webhook_endpoints", {"url": endpoint.url, "enabled_events": list(endpoint.events)})
        return OperationResult(details={"count": len(endpoints)})

    def create_checkout_session(self, session: CheckoutSpec) -> CheckoutSession:
        if not self.live:
            self._simulate("create checkout session", mode=session.mode)
            session_id = f"cs_test_{uuid.uuid4().hex[:16]}"
            return CheckoutSession(session_id=session_id, url=MOCK_CHECKOUT_URL, simulated=True)

        body = {
            "line_items": list(session.line_items),
            "mode": session.mode,
            "success_url": session.success_url,
            "cancel_url": session.cancel_url,
            "customer_email": session.customer_email,
        }
        data = self._post("/checkout/sessions", body)
        return CheckoutSession(session_id=data["id"], url=data.get("url") or "")

    def setup_customer_portal(self, portal: PortalSpec) -> OperationResult:
        if not self.live:
            self._simulate("set up customer portal", headline=portal.headline)
            return OperationResult(simulated=True)

        body = {
            "business_profile": {"headline": portal.headline},
            "features": {
                "customer_update": {"enabled": True, "allowed_updates": ["email", "tax_id"]},
                "invoice_history": {"enabled": True},
                "payment_method_update": {"enabled": True},
                "subscription_cancel": {"enabled": portal.allow_cancel},
            },
        }
        data = self._post("/billing_portal/configurations", body)
        return OperationResult(details={"configuration_id": data.get("id", "")})


class StripeAdapter(ProviderAdapter):
    service_family = ServiceFamily.STRIPE
    error_class = ProvisioningError

    def create_managed_backend(self) -> ManagedStripeBackend:
        return ManagedStripeBackend(self.channel)

    def create_direct_backend(self) -> DirectStripeBackend:
        return DirectStripeBackend(self.settings, session=self.session, timeout=self.timeout)

    def create_products(self, products: Sequence[ProductSpec]) -> list[StripeProduct]:
        return self._dispatch("create_products", list(products))

    def create_prices(self, prices: Sequence[PriceSpec]) -> list[StripePrice]:
        return self._dispatch("create_prices", list(prices))

    def setup_webhooks(self, endpoints: Sequence[WebhookEndpoint]) -> OperationResult:
        return self._dispatch("setup_webhooks", list(endpoints))

    def create_checkout_session(self, session: CheckoutSpec) -> CheckoutSession:
        return self._dispatch("create_checkout_session", session)

    def setup_customer_portal(self, portal: PortalSpec) -> OperationResult:
        return self._dispatch("setup_customer_portal", portal)
