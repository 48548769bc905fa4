import secrets
from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any, Literal

from pydantic import Field

from layr.adapters.base import AdapterResult, DirectBackend, ManagedBackend, OperationResult, ProviderAdapter
from layr.constants import ServiceFamily
from layr.exceptions import ProvisioningError
from layr.models.base import LayrBaseModel


class TableColumn(LayrBaseModel):
    name: str
    type: str
    primary_key: bool = False
    required: bool = False


class TableSchema(LayrBaseModel):
    name: str
    columns: tuple[TableColumn, ...]


class RLSPolicy(LayrBaseModel):
    name: str
    table: str
    action: Literal["SELECT", "INSERT", "UPDATE", "DELETE", "ALL"] = "SELECT"
    role: Literal["anon", "authenticated", "service_role"] = "authenticated"
    using: str = "true"


class AuthProvider(LayrBaseModel):
    name: Literal["email", "magic_link", "google", "github"]
    enabled: bool = True
    config: dict[str, Any] = Field(default_factory=dict)


class SupabaseProject(AdapterResult):
    project_ref: str
    url: str
    anon_key: str


class MigrationResult(AdapterResult):
    statements: tuple[str, ...] = ()


def create_table_sql(table: TableSchema) -> str:
    columns = ", ".join(
        f"{col.name} {col.type}{' PRIMARY KEY' if col.primary_key else ''}{' NOT NULL' if col.required else ''}"
        for col in table.columns
    )
    return f"CREATE TABLE IF NOT EXISTS {table.name} ({columns});"


def rls_policy_sql(policy: RLSPolicy) -> str:
    return (
        f'CREATE POLICY "{policy.name}" ON {policy.table} '
        f"FOR {policy.action} TO {policy.role} USING ({policy.using});"
    )


# Management API auth config keys toggled by each provider.
AUTH_PROVIDER_KEYS = {
    "email": "external_email_enabled",
    "magic_link": "external_email_enabled",
    "google": "external_google_enabled",
    "github": "external_github_enabled",
}


class SupabaseBackend(ABC):
    """Capability interface of the database/backend platform."""

    @abstractmethod
    def create_project(self, name: str, region: str | None = None) -> SupabaseProject: ...

    @abstractmethod
    def run_migrations(self, project_ref: str, statements: Sequence[str]) -> MigrationResult: ...

    @abstractmethod
    def setup_auth(self, project_ref: str, providers: Sequence[AuthProvider]) -> OperationResult: ...

    @abstractmethod
    def setup_rls(self, project_ref: str, policies: Sequence[RLSPolicy]) -> MigrationResult: ...


class ManagedSupabaseBackend(ManagedBackend, SupabaseBackend):
    family = ServiceFamily.SUPABASE

    def create_project(self, name: str, region: str | None = None) -> SupabaseProject:
        response = self._call("createProject", {"name": name, "region": region})
        data = self._require(response, "createProject", "projectId", "url", "anonKey")
        return SupabaseProject(
            project_ref=data["projectId"], url=data["url"], anon_key=data["anonKey"], channel="managed"
        )

    def run_migrations(self, project_ref: str, statements: Sequence[str]) -> MigrationResult:
        self._call("runMigrations", {"projectRef": project_ref, "migrations": list(statements)})
        return MigrationResult(statements=tuple(statements), channel="managed")

    def setup_auth(self, project_ref: str, providers: Sequence[AuthProvider]) -> OperationResult:
        self._call("setupAuth", {"projectRef": project_ref, "providers": [p.to_dict() for p in providers]})
        return OperationResult(channel="managed", details={"providers": [p.name for p in providers]})

    def setup_rls(self, project_ref: str, policies: Sequence[RLSPolicy]) -> MigrationResult:
        self._call("setupRLS", {"projectRef": project_ref, "policies": [p.to_dict() for p in policies]})
        return MigrationResult(statements=tuple(rls_policy_sql(p) for p in policies), channel="managed")


class DirectSupabaseBackend(DirectBackend, SupabaseBackend):
    """Supabase Management API; see https://supabase.com/docs/reference/api."""

    family = ServiceFamily.SUPABASE
    base_url = "https://api.supabase.com"
    error_class = ProvisioningError

    def auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.credentials['access_token']}"}

    def create_project(self, name: str, region: str | None = None) -> SupabaseProject:
        region = region or self.settings.supabase_region
        if not self.live:
            self._simulate("create project", name=name, region=region)
            return SupabaseProject(
                project_ref=f"sb-{name}",
                url=f"https://{name}.supabase.co",
                anon_key="mock-anon-key",
                simulated=True,
            )

        body = {
            "name": name,
            "organization_id": self.credentials["org_id"],
            "region": region,
            "db_pass": secrets.token_urlsafe(24),
        }
        data = self._request("POST", "/v1/projects", json=body)
        ref = data["id"]
        keys = self._request("GET", f"/v1/projects/{ref}/api-keys")
        anon_key = next((key["api_key"] for key in keys if key.get("name") == "anon"), "")
        return SupabaseProject(project_ref=ref, url=f"https://{ref}.supabase.co", anon_key=anon_key)

    def run_migrations(self, project_ref: str, statements: Sequence[str]) -> MigrationResult:
        if not self.live:
            self._simulate("run migrations", project_ref=project_ref, count=len(statements))
            return MigrationResult(statements=tuple(statements), simulated=True)

        for statement in statements:
            self._request("POST", f"/v1/projects/{project_ref}/database/query", json={"query": statement})
        return MigrationResult(statements=tuple(statements))

    def setup_auth(self, project_ref: str, providers: Sequence[AuthProvider]) -> OperationResult:
        names = [provider.name for provider in providers]
        if not self.live:
            self._simulate("set up auth providers", project_ref=project_ref, providers=names)
            return OperationResult(simulated=True, details={"providers": names})

        config: dict[str, Any] = {}
        for provider in providers:
            config[AUTH_PROVIDER_KEYS[provider.name]] = provider.enabled
            config.update(provider.config)
        self._request("PATCH", f"/v1/projects/{project_ref}/config/auth", json=config)
        return OperationResult(details={"providers": names})

    def setup_rls(self, project_ref: str, policies: Sequence[RLSPolicy]) -> MigrationResult:
        return self.run_migrations(project_ref, [rls_policy_sql(policy) for policy in policies])


class SupabaseAdapter(ProviderAdapter):
    service_family = ServiceFamily.SUPABASE
    error_class = ProvisioningError

    def create_managed_backend(self) -> ManagedSupabaseBackend:
        return ManagedSupabaseBackend(self.channel)

    def create_direct_backend(self) -> DirectSupabaseBackend:
        return DirectSupabaseBackend(self.settings, session=self.session, timeout=self.timeout)

    def create_project(self, name: str, region: str | None = None) -> SupabaseProject:
        return self._dispatch("create_project", name, region)

    def run_migrations(self, project_ref: str, statements: Sequence[str]) -> MigrationResult:
        return self._dispatch("run_migrations", project_ref, list(statements))

    def create_tables(self, project_ref: str, tables: Sequence[TableSchema]) -> MigrationResult:
        """Generate CREATE TABLE statements and apply them as migrations."""
        return self.run_migrations(project_ref, [create_table_sql(table) for table in tables])

    def setup_auth(self, project_ref: str, providers: Sequence[AuthProvider]) -> OperationResult:
        return self._dispatch("setup_auth", project_ref, list(providers))

    def setup_rls(self, project_ref: str, policies: Sequence[RLSPolicy]) -> MigrationResult:
        return self._dispatch("setup_rls", project_ref, list(policies))
