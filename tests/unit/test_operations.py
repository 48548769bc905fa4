from unittest.mock import MagicMock, patch

import pytest
import requests

from layr.adapters import AdapterFactory
from layr.adapters.vercel import MOCK_PREVIEW_URL
from layr.constants import BlueprintId, TaskType
from layr.exceptions import DeploymentError
from layr.graph import build_task_graph
from layr.operations import PipelineContext, PipelineOperations, table_name
from layr.settings import LayrSettings


def make_operations(intent, settings, blueprint=BlueprintId.SAAS_STARTER, http=None):
    adapters = AdapterFactory(settings).create_all()
    return PipelineOperations(PipelineContext(intent, blueprint, settings, adapters, http=http))


def run_step(operations, graph, task_id):
    task = graph.get(task_id)
    output = operations.as_mapping()[task.type](task, graph)
    graph.artifacts[task_id] = output
    return output


@pytest.fixture
def graph(saas_intent):
    return build_task_graph(BlueprintId.SAAS_STARTER, saas_intent)


def test_table_name():
    assert table_name("Due Date") == "due_date"
    assert table_name("  line-item ") == "line_item"


def test_mapping_covers_every_task_type(saas_intent, settings):
    assert set(make_operations(saas_intent, settings).as_mapping()) == set(TaskType)


def test_init_repo(saas_intent, settings, graph):
    output = run_step(make_operations(saas_intent, settings), graph, "init")

    assert output["project_name"] == "bill-buddy"
    assert output["project_id"] == "prj_bill-buddy"
    assert output["repo_path"].endswith("bill-buddy")
    assert output["simulated"] is True


def test_provision_backends_for_saas(saas_intent, settings, graph):
    output = run_step(make_operations(saas_intent, settings), graph, "provision")

    assert output["supabase"]["project_ref"] == "sb-bill-buddy"
    assert output["supabase"]["tables"] == ["invoice"]
    assert output["clerk"]["publishable_key"].startswith("pk_test_")
    assert output["stripe"]["products"] == ["prod_starter", "prod_pro"]
    assert output["stripe"]["prices"] == ["price_starter_900", "price_pro_2900"]
    assert output["simulated"] is True


def test_provision_backends_without_auth_or_payments(form_intent, settings):
    graph = build_task_graph(BlueprintId.FORM_TO_DB, form_intent)
    output = run_step(make_operations(form_intent, settings, BlueprintId.FORM_TO_DB), graph, "provision")

    assert output["supabase"]["tables"] == ["volunteer"]
    assert "clerk" not in output
    assert "stripe" not in output


def test_config_env_collects_provisioned_values(saas_intent, graph):
    settings = LayrSettings(stripe_publishable_key="pk_test_abc", stripe_secret_key="sk_test_abc")
    operations = make_operations(saas_intent, settings)
    graph.artifacts["init"] = {"project_id": "prj_1", "repo_path": "apps/x", "project_name": "x"}
    graph.artifacts["provision"] = {
        "supabase": {"url": "https://x.supabase.co", "anon_key": "anon"},
        "clerk": {"publishable_key": "pk", "secret_key": "sk"},
        "stripe": {"products": [], "prices": []},
    }

    output = run_step(operations, graph, "config")

    assert output["variables"] == [
        "CLERK_SECRET_KEY",
        "NEXT_PUBLIC_CLERK_PUBLISHABLE_KEY",
        "NEXT_PUBLIC_STRIPE_PUBLISHABLE_KEY",
        "NEXT_PUBLIC_SUPABASE_ANON_KEY",
        "NEXT_PUBLIC_SUPABASE_URL",
        "STRIPE_SECRET_KEY",
    ]


def test_scaffold_pages(saas_intent, settings, graph):
    operations = make_operations(saas_intent, settings)
    run_step(operations, graph, "init")

    output = run_step(operations, graph, "scaffold")

    assert output["blueprint"] == "saas-starter"
    assert output["pages"][0] == "/"
    assert {"/sign-in", "/pricing", "/dashboard", "/invoice", "/invoice/new"} <= set(output["pages"])
    assert len(output["pages"]) == len(set(output["pages"]))


def test_commit_preview(saas_intent, settings, graph):
    operations = make_operations(saas_intent, settings)
    run_step(operations, graph, "init")

    output = run_step(operations, graph, "commit")

    assert output["preview_url"] == MOCK_PREVIEW_URL
    assert output["simulated"] is True


class TestSmokeCheck:
    def seed_preview(self, graph, url="https://bill-buddy.vercel.app", simulated=False):
        graph.artifacts["commit"] = {"preview_url": url, "simulated": simulated}

    def test_skipped_for_simulated_deployments(self, saas_intent, settings, graph):
        http = MagicMock()
        self.seed_preview(graph, simulated=True)

        output = run_step(make_operations(saas_intent, settings, http=http), graph, "verify")

        assert output["checked"] is False
        http.get.assert_not_called()

    def test_skipped_when_disabled(self, saas_intent, graph):
        http = MagicMock()
        self.seed_preview(graph)
        settings = LayrSettings(smoke_check=False)

        output = run_step(make_operations(saas_intent, settings, http=http), graph, "verify")

        assert output == {"url": "https://bill-buddy.vercel.app", "checked": False, "reason": "smoke check disabled"}

    def test_live_check_passes(self, saas_intent, settings, graph):
        http = MagicMock()
        http.get.return_value = MagicMock(status_code=200)
        self.seed_preview(graph)

        output = run_step(make_operations(saas_intent, settings, http=http), graph, "verify")

        assert output["checked"] is True
        assert output["status_code"] == 200
        http.get.assert_called_once_with("https://bill-buddy.vercel.app", timeout=settings.verification_timeout)

    def test_bad_status_fails(self, saas_intent, settings, graph):
        http = MagicMock()
        http.get.return_value = MagicMock(status_code=503)
        self.seed_preview(graph)

        with pytest.raises(DeploymentError, match="HTTP 503"):
            run_step(make_operations(saas_intent, settings, http=http), graph, "verify")

    def test_unreachable_fails(self, saas_intent, settings, graph):
        http = MagicMock()
        http.get.side_effect = requests.ConnectionError("refused")
        self.seed_preview(graph)

        with pytest.raises(DeploymentError, match="refused"):
            run_step(make_operations(saas_intent, settings, http=http), graph, "verify")

    @patch("layr.operations.requests.Session")
    def test_owned_session_is_closed(self, mock_session_class, saas_intent, settings, graph):
        session = mock_session_class.return_value.__enter__.return_value
        session.get.return_value = MagicMock(status_code=204)
        self.seed_preview(graph)

        output = run_step(make_operations(saas_intent, settings), graph, "verify")

        assert output["status_code"] == 204
        session.get.assert_called_once_with("https://bill-buddy.vercel.app", timeout=settings.verification_timeout)
        mock_session_class.return_value.__exit__.assert_called_once()
