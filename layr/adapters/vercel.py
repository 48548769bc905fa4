from abc import ABC, abstractmethod
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from layr.adapters.base import AdapterResult, DirectBackend, ManagedBackend, OperationResult, ProviderAdapter
from layr.constants import Environment, ServiceFamily
from layr.exceptions import DeploymentError

MOCK_PREVIEW_URL = "https://mock-preview.vercel.app"
MOCK_PRODUCTION_URL = "https://mock-production.vercel.app"


class VercelProject(AdapterResult):
    project_id: str
    name: str


class Deployment(AdapterResult):
    url: str
    deployment_id: str
    environment: str = "preview"


class VercelBackend(ABC):
    """Capability interface of the deployment target."""

    @abstractmethod
    def create_project(self, name: str, framework: str | None = None) -> VercelProject: ...

    @abstractmethod
    def deploy(
        self, project_path: str, environment: str = "preview", project_name: str | None = None
    ) -> Deployment: ...

    @abstractmethod
    def set_env_vars(self, project_id: str, variables: Mapping[str, str]) -> OperationResult: ...


class ManagedVercelBackend(ManagedBackend, VercelBackend):
    family = ServiceFamily.VERCEL

    def create_project(self, name: str, framework: str | None = None) -> VercelProject:
        response = self._call("createProject", {"name": name, "framework": framework})
        data = self._require(response, "createProject", "projectId")
        return VercelProject(project_id=data["projectId"], name=data.get("name") or name, channel="managed")

    def deploy(
        self, project_path: str, environment: str = "preview", project_name: str | None = None
    ) -> Deployment:
        response = self._call("deploy", {"path": project_path, "env": environment, "name": project_name})
        data = self._require(response, "deploy", "url", "deploymentId")
        return Deployment(
            url=data["url"], deployment_id=data["deploymentId"], environment=environment, channel="managed"
        )

    def set_env_vars(self, project_id: str, variables: Mapping[str, str]) -> OperationResult:
        self._call("setEnvVars", {"projectId": project_id, "variables": dict(variables)})
        return OperationResult(channel="managed", details={"keys": sorted(variables)})


class DirectVercelBackend(DirectBackend, VercelBackend):
    """Vercel REST API; see https://vercel.com/docs/rest-api."""

    family = ServiceFamily.VERCEL
    base_url = "https://api.vercel.com"
    error_class = DeploymentError

    def auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.credentials['token']}"}

    @property
    def team_params(self) -> dict[str, str]:
        team_id = self.credentials.get("team_id")
        return {"teamId": team_id} if team_id else {}

    def create_project(self, name: str, framework: str | None = None) -> VercelProject:
        if not self.live:
            self._simulate("create project", name=name, framework=framework)
            return VercelProject(project_id=f"prj_{name}", name=name, simulated=True)

        body: dict[str, Any] = {"name": name}
        if framework:
            body["framework"] = framework
        data = self._request("POST", "/v10/projects", json=body, params=self.team_params)
        return VercelProject(project_id=data["id"], name=data.get("name", name))

    def deploy(
        self, project_path: str, environment: str = "preview", project_name: str | None = None
    ) -> Deployment:
        production = environment == Environment.PRODUCTION
        if not self.live:
            self._simulate("deploy", path=project_path, environment=environment)
            return Deployment(
                url=MOCK_PRODUCTION_URL if production else MOCK_PREVIEW_URL,
                deployment_id=f"sim-{environment}-deployment",
                environment=environment,
                simulated=True,
            )

        body: dict[str, Any] = {"name": project_name or Path(project_path).name, "files": []}
        if production:
            body["target"] = "production"
        data = self._request("POST", "/v13/deployments", json=body, params=self.team_params)
        url = data.get("url", "")
        if url and not url.startswith("http"):
            url = f"https://{url}"
        return Deployment(url=url, deployment_id=data["id"], environment=environment)

    def set_env_vars(self, project_id: str, variables: Mapping[str, str]) -> OperationResult:
        if not self.live:
            self._simulate("set env vars", project_id=project_id, keys=sorted(variables))
            return OperationResult(simulated=True, details={"keys": sorted(variables)})

        body = [
            {"key": key, "value": value, "type": "encrypted", "target": ["production", "preview", "development"]}
            for key, value in variables.items()
        ]
        self._request(
            "POST", f"/v10/projects/{project_id}/env", json=body, params={**self.team_params, "upsert": "true"}
        )
        return OperationResult(details={"keys": sorted(variables)})


class VercelAdapter(ProviderAdapter):
    service_family = ServiceFamily.VERCEL
    error_class = DeploymentError

    def create_managed_backend(self) -> ManagedVercelBackend:
        return ManagedVercelBackend(self.channel)

    def create_direct_backend(self) -> DirectVercelBackend:
        return DirectVercelBackend(self.settings, session=self.session, timeout=self.timeout)

    def create_project(self, name: str, framework: str | None = None) -> VercelProject:
        return self._dispatch("create_project", name, framework)

    def deploy(
        self, project_path: str, environment: str = "preview", project_name: str | None = None
    ) -> Deployment:
        return self._dispatch("deploy", project_path, environment, project_name)

    def set_env_vars(self, project_id: str, variables: Mapping[str, str]) -> OperationResult:
        return self._dispatch("set_env_vars", project_id, variables)
