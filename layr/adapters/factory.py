from typing import NamedTuple

import requests

from layr.adapters.base import ProviderAdapter
from layr.adapters.channel import ManagedChannelClient
from layr.adapters.clerk import ClerkAdapter
from layr.adapters.stripe import StripeAdapter
from layr.adapters.supabase import SupabaseAdapter
from layr.adapters.vercel import VercelAdapter
from layr.constants import ServiceFamily
from layr.logger import logger
from layr.settings import LayrSettings

ADAPTER_CLASSES: dict[ServiceFamily, type[ProviderAdapter]] = {
    ServiceFamily.VERCEL: VercelAdapter,
    ServiceFamily.SUPABASE: SupabaseAdapter,
    ServiceFamily.CLERK: ClerkAdapter,
    ServiceFamily.STRIPE: StripeAdapter,
}


class AdapterSet(NamedTuple):
    vercel: VercelAdapter
    supabase: SupabaseAdapter
    clerk: ClerkAdapter
    stripe: StripeAdapter


class AdapterFactory:
    """
    Builds the per-run adapters for every service family.

    All adapters of a run share one ManagedChannelClient, seeded from settings
    unless one is supplied, and the same optional HTTP session.
    """

    def __init__(
        self,
        settings: LayrSettings,
        channel: ManagedChannelClient | None = None,
        session: requests.Session | None = None,
    ):
        self.settings = settings
        self.channel = channel or ManagedChannelClient.from_settings(settings)
        self.session = session

    def create(self, family: ServiceFamily | str) -> ProviderAdapter:
        family = ServiceFamily(family)
        adapter = ADAPTER_CLASSES[family](self.channel, settings=self.settings, session=self.session)
        logger.debug(
            "Created %s adapter (managed channel %s, credentials %s)",
            family,
            "available" if adapter.managed_channel_available else "unavailable",
            "configured" if self.settings.is_service_configured(family) else "missing",
        )
        return adapter

    def create_all(self) -> AdapterSet:
        return AdapterSet(**{family.value: self.create(family) for family in ServiceFamily})

    def check_channel_availability(self) -> dict[ServiceFamily, bool]:
        """Current managed channel availability for every service family."""
        return {family: self.channel.is_available(family) for family in ServiceFamily}
