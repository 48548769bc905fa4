"""
Pipeline step operations.

Each handler performs one TaskType against the provider adapters and returns
the task's output. Handlers read upstream results from `graph.artifacts`
(through `TaskGraph.output_of`) and never mutate task state; the executor
owns that.
"""

from pathlib import Path
from typing import Any

import requests

from layr.adapters.factory import AdapterSet
from layr.adapters.stripe import PriceSpec, ProductSpec, StripePrice, StripeProduct
from layr.adapters.supabase import RLSPolicy, TableColumn, TableSchema
from layr.blueprints.catalog import get_blueprint
from layr.constants import AuthMode, BlueprintId, Environment, FieldType, PaymentModel, TaskType
from layr.exceptions import DeploymentError
from layr.executor import TaskOperation
from layr.logger import logger
from layr.models.intent import Intent, Plan
from layr.models.task import Task, TaskGraph
from layr.settings import LayrSettings

SQL_COLUMN_TYPES: dict[FieldType, str] = {
    FieldType.STRING: "text",
    FieldType.TEXT: "text",
    FieldType.NUMBER: "numeric",
    FieldType.BOOLEAN: "boolean",
    FieldType.DATE: "timestamptz",
    FieldType.EMAIL: "text",
    FieldType.URL: "text",
    FieldType.IMAGE: "text",
    FieldType.JSON: "jsonb",
}

# Routes each blueprint feature contributes to the scaffolded app.
FEATURE_PAGES: dict[str, tuple[str, ...]] = {
    "Authentication": ("/sign-in", "/sign-up"),
    "Payments": ("/pricing", "/billing"),
    "CRUD": ("/dashboard",),
    "Admin": ("/admin",),
    "Data Collection": ("/submit", "/thanks"),
    "Posts": ("/posts",),
    "Profiles": ("/profile",),
    "Listings": ("/listings",),
    "Checkout": ("/checkout",),
    "Search": ("/search",),
    "Waitlist": ("/waitlist",),
    "Contact Form": ("/contact",),
}

STRIPE_INTERVALS: dict[PaymentModel, str | None] = {
    PaymentModel.SUBSCRIPTION: "month",
    PaymentModel.USAGE: "month",
    PaymentModel.ONE_TIME: None,
}


def table_name(name: str) -> str:
    return "_".join(name.strip().lower().replace("-", " ").split())


class PipelineContext:
    """Everything a run's operations share: the intent, its blueprint, settings, and adapters."""

    def __init__(
        self,
        intent: Intent,
        blueprint_id: BlueprintId,
        settings: LayrSettings,
        adapters: AdapterSet,
        http: requests.Session | None = None,
    ):
        self.intent = intent
        self.blueprint_id = blueprint_id
        self.settings = settings
        self.adapters = adapters
        self.http = http

    @property
    def project_name(self) -> str:
        return self.intent.slug


class PipelineOperations:
    """Handlers for every TaskType of the default pipeline."""

    def __init__(self, context: PipelineContext):
        self.context = context

    def as_mapping(self) -> dict[TaskType, TaskOperation]:
        return {
            TaskType.INIT_REPO: self.init_repo,
            TaskType.PROVISION_BACKENDS: self.provision_backends,
            TaskType.CONFIG_ENV: self.config_env,
            TaskType.SCAFFOLD_PAGES: self.scaffold_pages,
            TaskType.COMMIT_PREVIEW: self.commit_preview,
            TaskType.DEPLOY_PROD: self.deploy_prod,
            TaskType.VERIFY_SMOKE: self.verify_smoke,
        }

    def init_repo(self, task: Task, graph: TaskGraph) -> dict[str, Any]:
        name = self.context.project_name
        project = self.context.adapters.vercel.create_project(name, framework="nextjs")
        return {
            "repo_path": str(Path(self.context.settings.output_dir) / name),
            "project_id": project.project_id,
            "project_name": project.name,
            "simulated": project.simulated,
        }

    def provision_backends(self, task: Task, graph: TaskGraph) -> dict[str, Any]:
        intent = self.context.intent
        adapters = self.context.adapters
        name = self.context.project_name
        output: dict[str, Any] = {}

        database = adapters.supabase.create_project(name)
        tables = self._table_schemas()
        if tables:
            adapters.supabase.create_tables(database.project_ref, tables)
            if intent.needs_auth:
                adapters.supabase.setup_rls(
                    database.project_ref,
                    [
                        RLSPolicy(name=f"Authenticated read {table.name}", table=table.name)
                        for table in tables
                    ],
                )
        output["supabase"] = {
            "project_ref": database.project_ref,
            "url": database.url,
            "anon_key": database.anon_key,
            "tables": [table.name for table in tables],
        }
        simulated = [database.simulated]

        if intent.needs_auth:
            app = adapters.clerk.create_app(name, "nextjs")
            adapters.clerk.configure_auth(self._auth_settings())
            output["clerk"] = {
                "app_id": app.app_id,
                "publishable_key": app.publishable_key,
                "secret_key": app.secret_key,
            }
            simulated.append(app.simulated)

        if intent.needs_payments:
            products, prices = self._provision_payments()
            output["stripe"] = {
                "products": [product.product_id for product in products],
                "prices": [price.price_id for price in prices],
            }
            simulated.extend(product.simulated for product in products)

        output["simulated"] = any(simulated)
        return output

    def config_env(self, task: Task, graph: TaskGraph) -> dict[str, Any]:
        project = graph.output_of(TaskType.INIT_REPO)
        provisioned = graph.output_of(TaskType.PROVISION_BACKENDS)
        settings = self.context.settings

        variables: dict[str, str] = {}
        if supabase := provisioned.get("supabase"):
            variables["NEXT_PUBLIC_SUPABASE_URL"] = supabase["url"]
            variables["NEXT_PUBLIC_SUPABASE_ANON_KEY"] = supabase["anon_key"]
        if clerk := provisioned.get("clerk"):
            variables["NEXT_PUBLIC_CLERK_PUBLISHABLE_KEY"] = clerk["publishable_key"]
            variables["CLERK_SECRET_KEY"] = clerk["secret_key"]
        if "stripe" in provisioned:
            if settings.stripe_publishable_key:
                variables["NEXT_PUBLIC_STRIPE_PUBLISHABLE_KEY"] = settings.stripe_publishable_key
            if settings.stripe_secret_key:
                variables["STRIPE_SECRET_KEY"] = settings.stripe_secret_key
            if settings.stripe_webhook_secret:
                variables["STRIPE_WEBHOOK_SECRET"] = settings.stripe_webhook_secret

        if variables:
            self.context.adapters.vercel.set_env_vars(project["project_id"], variables)
        return {"variables": sorted(variables)}

    def scaffold_pages(self, task: Task, graph: TaskGraph) -> dict[str, Any]:
        blueprint = get_blueprint(self.context.blueprint_id)
        pages = ["/"]
        for feature in blueprint.features:
            pages.extend(FEATURE_PAGES.get(feature, ()))
        for entity in self.context.intent.entities:
            route = f"/{table_name(entity.name).replace('_', '-')}"
            pages.extend((route, f"{route}/new"))

        return {
            "blueprint": blueprint.id.value,
            "app_dir": graph.output_of(TaskType.INIT_REPO).get("repo_path", ""),
            "pages": list(dict.fromkeys(pages)),
        }

    def commit_preview(self, task: Task, graph: TaskGraph) -> dict[str, Any]:
        project = graph.output_of(TaskType.INIT_REPO)
        deployment = self.context.adapters.vercel.deploy(
            project["repo_path"], "preview", project.get("project_name")
        )
        if not deployment.url:
            raise DeploymentError("Preview deployment returned no URL", service="vercel")
        return {
            "preview_url": deployment.url,
            "deployment_id": deployment.deployment_id,
            "simulated": deployment.simulated,
        }

    def deploy_prod(self, task: Task, graph: TaskGraph) -> dict[str, Any]:
        project = graph.output_of(TaskType.INIT_REPO)
        deployment = self.context.adapters.vercel.deploy(
            project["repo_path"], Environment.PRODUCTION.value, project.get("project_name")
        )
        if not deployment.url:
            raise DeploymentError("Production deployment returned no URL", service="vercel")
        return {
            "production_url": deployment.url,
            "deployment_id": deployment.deployment_id,
            "simulated": deployment.simulated,
        }

    def verify_smoke(self, task: Task, graph: TaskGraph) -> dict[str, Any]:
        preview = graph.output_of(TaskType.COMMIT_PREVIEW)
        url = preview.get("preview_url", "")

        if preview.get("simulated"):
            logger.info("Skipping smoke check for simulated deployment %s", url)
            return {"url": url, "checked": False, "reason": "simulated deployment"}
        if not self.context.settings.smoke_check:
            return {"url": url, "checked": False, "reason": "smoke check disabled"}

        try:
            response = self._smoke_get(url)
        except requests.RequestException as e:
            raise DeploymentError(f"Smoke check of {url} failed: {e}", service="vercel") from e
        if response.status_code >= 400:
            raise DeploymentError(
                f"Smoke check of {url} returned HTTP {response.status_code}",
                service="vercel",
                context={"status": response.status_code},
            )
        logger.info("Smoke check of %s passed (HTTP %d)", url, response.status_code)
        return {"url": url, "checked": True, "status_code": response.status_code}

    def _smoke_get(self, url: str) -> requests.Response:
        timeout = self.context.settings.verification_timeout
        if self.context.http is not None:
            return self.context.http.get(url, timeout=timeout)
        with requests.Session() as session:
            return session.get(url, timeout=timeout)

    def _table_schemas(self) -> list[TableSchema]:
        tables = []
        for entity in self.context.intent.entities:
            columns = [TableColumn(name="id", type="uuid", primary_key=True, required=True)]
            columns.extend(
                TableColumn(name=table_name(field.name), type=SQL_COLUMN_TYPES[field.type], required=field.required)
                for field in entity.fields
            )
            columns.append(TableColumn(name="created_at", type="timestamptz", required=True))
            tables.append(TableSchema(name=table_name(entity.name), columns=tuple(columns)))
        return tables

    def _auth_settings(self) -> dict[str, Any]:
        auth = self.context.intent.auth
        return {
            "email_password": auth in (None, AuthMode.EMAIL_PASSWORD),
            "magic_link": auth is AuthMode.MAGIC_LINK,
            "oauth": ["google", "github"] if auth is AuthMode.SOCIAL_LOGIN else [],
        }

    def _provision_payments(self) -> tuple[list[StripeProduct], list[StripePrice]]:
        intent = self.context.intent
        stripe = self.context.adapters.stripe
        plans = intent.payments.plans or (Plan(name=f"{intent.slug} standard", price_monthly=0),)

        products = stripe.create_products([ProductSpec(name=plan.name, description=intent.goal) for plan in plans])
        interval = STRIPE_INTERVALS.get(intent.payment_model)
        prices = stripe.create_prices(
            [
                PriceSpec(
                    product_id=product.product_id,
                    unit_amount=round(plan.price_monthly * 100),
                    interval=interval,
                )
                for product, plan in zip(products, plans, strict=False)
            ]
        )
        return products, prices
