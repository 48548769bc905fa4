"""Static, descriptive metadata for each blueprint. Nothing here affects execution."""

from pydantic import ConfigDict

from layr.constants import BlueprintId
from layr.models.base import LayrBaseModel


class BlueprintMetadata(LayrBaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    id: BlueprintId
    name: str
    description: str
    features: tuple[str, ...]
    stack: tuple[str, ...]
    capabilities: frozenset[str]


# Declaration order matters: the similarity ranking breaks ties with it.
BLUEPRINTS: dict[BlueprintId, BlueprintMetadata] = {
    bp.id: bp
    for bp in (
        BlueprintMetadata(
            id=BlueprintId.SAAS_STARTER,
            name="SaaS Starter",
            description="Full-featured SaaS application with auth, payments, and CRUD",
            features=("Authentication", "Payments", "CRUD", "Email", "Admin"),
            stack=("Next.js", "Supabase", "Clerk", "Stripe", "Resend"),
            capabilities=frozenset({"auth", "crud", "payments", "email", "analytics"}),
        ),
        BlueprintMetadata(
            id=BlueprintId.FORM_TO_DB,
            name="Form to Database",
            description="Public form that saves to database",
            features=("Data Collection", "Public Access"),
            stack=("Next.js", "Supabase"),
            capabilities=frozenset({"crud", "email"}),
        ),
        BlueprintMetadata(
            id=BlueprintId.COMMUNITY_MINI,
            name="Community Mini",
            description="Simple community with posts and comments",
            features=("Authentication", "Posts", "Comments", "Profiles"),
            stack=("Next.js", "Supabase", "Clerk"),
            capabilities=frozenset({"auth", "crud", "search"}),
        ),
        BlueprintMetadata(
            id=BlueprintId.MARKETPLACE_LITE,
            name="Marketplace Lite",
            description="Basic marketplace with listings and checkout",
            features=("Authentication", "Listings", "Checkout", "Search"),
            stack=("Next.js", "Supabase", "Clerk", "Stripe"),
            capabilities=frozenset({"auth", "crud", "payments", "search", "files"}),
        ),
        BlueprintMetadata(
            id=BlueprintId.STATIC_LANDING,
            name="Static Landing",
            description="Marketing landing page with waitlist",
            features=("Landing Page", "Waitlist", "Contact Form"),
            stack=("Next.js", "Supabase"),
            capabilities=frozenset({"email"}),
        ),
    )
}


def get_blueprint(blueprint_id: BlueprintId | str) -> BlueprintMetadata:
    return BLUEPRINTS[BlueprintId(blueprint_id)]
