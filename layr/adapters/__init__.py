from layr.adapters.base import AdapterResult, ChannelState, OperationResult, ProviderAdapter, WebhookEndpoint
from layr.adapters.channel import ManagedChannelClient, Transport
from layr.adapters.clerk import ClerkAdapter, ClerkApp
from layr.adapters.factory import AdapterFactory, AdapterSet
from layr.adapters.stripe import CheckoutSession, PriceSpec, ProductSpec, StripeAdapter, StripePrice, StripeProduct
from layr.adapters.supabase import (
    AuthProvider,
    MigrationResult,
    RLSPolicy,
    SupabaseAdapter,
    SupabaseProject,
    TableColumn,
    TableSchema,
)
from layr.adapters.vercel import Deployment, VercelAdapter, VercelProject

__all__ = [
    "AdapterFactory",
    "AdapterResult",
    "AdapterSet",
    "AuthProvider",
    "ChannelState",
    "CheckoutSession",
    "ClerkAdapter",
    "ClerkApp",
    "Deployment",
    "ManagedChannelClient",
    "MigrationResult",
    "OperationResult",
    "PriceSpec",
    "ProductSpec",
    "ProviderAdapter",
    "RLSPolicy",
    "StripeAdapter",
    "StripePrice",
    "StripeProduct",
    "SupabaseAdapter",
    "SupabaseProject",
    "TableColumn",
    "TableSchema",
    "Transport",
    "VercelAdapter",
    "VercelProject",
    "WebhookEndpoint",
]
