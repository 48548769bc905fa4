from unittest.mock import MagicMock

import pytest

from layr.constants import BlueprintId, TaskStatus, TaskType
from layr.exceptions import ConfigurationError, DeploymentError, GraphError, ProvisioningError, TaskExecutionError
from layr.executor import TaskExecutor
from layr.graph import build_task_graph
from layr.models.task import Task, TaskGraph
from layr.processors import PipelineProcessor
from layr.retry import RetryPolicy


def succeed_with(**output):
    def operation(task, graph):
        return dict(output)

    return operation


def fail_times(count, error=ProvisioningError("temporarily unavailable"), output=None):
    """Operation that raises `error` `count` times, then returns `output`."""
    calls = {"n": 0}

    def operation(task, graph):
        calls["n"] += 1
        if calls["n"] <= count:
            raise error
        return output or {"ok": True}

    operation.calls = calls
    return operation


def all_succeeding():
    return {task_type: succeed_with(step=task_type.value) for task_type in TaskType}


@pytest.fixture
def graph():
    return build_task_graph(BlueprintId.SAAS_STARTER)


def make_executor(operations, no_sleep, **kwargs):
    kwargs.setdefault("retry_policy", RetryPolicy(max_attempts=3, base_delay=1.0, max_delay=30.0))
    return TaskExecutor(operations, sleep=no_sleep, **kwargs)


class TestHappyPath:
    def test_all_tasks_complete(self, graph, no_sleep):
        make_executor(all_succeeding(), no_sleep).execute(graph)

        assert graph.succeeded
        assert all(task.attempts == 1 for task in graph.tasks)
        assert graph.artifacts["provision"] == {"step": "provision_backends"}
        assert graph.get("provision").output == {"step": "provision_backends"}

    def test_operations_see_upstream_artifacts(self, graph, no_sleep):
        seen = {}

        def config(task, g):
            seen.update(g.output_of(TaskType.INIT_REPO))
            return {}

        operations = all_succeeding()
        operations[TaskType.INIT_REPO] = succeed_with(project_id="prj_1")
        operations[TaskType.CONFIG_ENV] = config

        make_executor(operations, no_sleep).execute(graph)
        assert seen == {"project_id": "prj_1"}

    def test_none_output_is_stored_as_empty_dict(self, graph, no_sleep):
        operations = all_succeeding()
        operations[TaskType.SCAFFOLD_PAGES] = lambda task, g: None

        make_executor(operations, no_sleep).execute(graph)
        assert graph.artifacts["scaffold"] == {}


class TestRetries:
    def test_flaky_task_recovers(self, graph, no_sleep):
        operations = all_succeeding()
        operations[TaskType.PROVISION_BACKENDS] = fail_times(2)
        on_retry = MagicMock()

        make_executor(operations, no_sleep, on_retry=on_retry).execute(graph)

        provision = graph.get("provision")
        assert provision.status is TaskStatus.COMPLETED
        assert provision.attempts == 3
        assert no_sleep.waits == [1.0, 2.0]
        assert [call.args[1] for call in on_retry.call_args_list] == [1, 2]
        assert [call.args[3] for call in on_retry.call_args_list] == [1.0, 2.0]

    def test_flaky_task_exhausts_attempts(self, graph, no_sleep):
        operations = all_succeeding()
        operations[TaskType.DEPLOY_PROD] = fail_times(5, DeploymentError("502 from platform"))

        with pytest.raises(TaskExecutionError) as exc_info:
            make_executor(operations, no_sleep).execute(graph)

        assert exc_info.value.task_id == "deploy"
        deploy = graph.get("deploy")
        assert deploy.status is TaskStatus.FAILED
        assert deploy.attempts == 3
        assert "502 from platform" in deploy.error
        assert graph.get("verify").status is TaskStatus.SKIPPED
        assert no_sleep.waits == [1.0, 2.0]

    def test_non_flaky_task_runs_once(self, graph, no_sleep):
        operations = all_succeeding()
        operations[TaskType.CONFIG_ENV] = fail_times(1)

        with pytest.raises(TaskExecutionError):
            make_executor(operations, no_sleep).execute(graph)

        assert graph.get("config").attempts == 1
        assert no_sleep.waits == []

    def test_configuration_error_is_not_retried(self, graph, no_sleep):
        operations = all_succeeding()
        operations[TaskType.PROVISION_BACKENDS] = fail_times(5, ConfigurationError("invalid token"))

        with pytest.raises(TaskExecutionError, match="invalid token"):
            make_executor(operations, no_sleep).execute(graph)

        assert graph.get("provision").attempts == 1

    def test_custom_flaky_types(self, graph, no_sleep):
        operations = all_succeeding()
        operations[TaskType.CONFIG_ENV] = fail_times(1)

        make_executor(operations, no_sleep, flaky_types={TaskType.CONFIG_ENV}).execute(graph)
        assert graph.get("config").attempts == 2


class TestFailureHandling:
    def test_failure_aborts_remaining_tasks(self, graph, no_sleep):
        operations = all_succeeding()
        operations[TaskType.CONFIG_ENV] = fail_times(1, RuntimeError("disk full"))

        with pytest.raises(TaskExecutionError) as exc_info:
            make_executor(operations, no_sleep).execute(graph)

        assert exc_info.value.task_id == "config"
        assert exc_info.value.reason == "disk full"
        assert graph.statuses() == {
            "init": TaskStatus.COMPLETED,
            "provision": TaskStatus.COMPLETED,
            "config": TaskStatus.FAILED,
            "scaffold": TaskStatus.SKIPPED,
            "commit": TaskStatus.SKIPPED,
            "deploy": TaskStatus.SKIPPED,
            "verify": TaskStatus.SKIPPED,
        }
        # Work done before the failure is kept.
        assert set(graph.artifacts) == {"init", "provision"}

    def test_error_without_message_uses_class_name(self, graph, no_sleep):
        operations = all_succeeding()
        operations[TaskType.INIT_REPO] = fail_times(1, KeyError())

        with pytest.raises(TaskExecutionError):
            make_executor(operations, no_sleep).execute(graph)
        assert graph.get("init").error

    def test_missing_operation(self, graph, no_sleep):
        operations = all_succeeding()
        del operations[TaskType.SCAFFOLD_PAGES]

        with pytest.raises(TaskExecutionError, match="No operation registered"):
            make_executor(operations, no_sleep).execute(graph)
        assert graph.get("scaffold").attempts == 1

    def test_pre_failed_dependency_skips_dependents(self, graph, no_sleep):
        provision = graph.get("provision")
        provision.transition(TaskStatus.RUNNING)
        provision.transition(TaskStatus.FAILED, error="quota exceeded")
        operations = all_succeeding()

        with pytest.raises(TaskExecutionError) as exc_info:
            make_executor(operations, no_sleep).execute(graph)

        assert exc_info.value.task_id == "provision"
        assert exc_info.value.reason == "quota exceeded"
        assert graph.get("init").status is TaskStatus.COMPLETED
        assert provision.status is TaskStatus.FAILED
        assert provision.attempts == 0
        for task_id in ("config", "scaffold", "commit", "deploy", "verify"):
            assert graph.get(task_id).status is TaskStatus.SKIPPED

    def test_terminal_tasks_are_left_alone(self, graph, no_sleep):
        init = graph.get("init")
        init.transition(TaskStatus.RUNNING)
        init.transition(TaskStatus.COMPLETED, output={"already": "done"})
        graph.artifacts["init"] = {"already": "done"}
        operations = all_succeeding()
        operations[TaskType.INIT_REPO] = MagicMock()

        make_executor(operations, no_sleep).execute(graph)

        operations[TaskType.INIT_REPO].assert_not_called()
        assert graph.artifacts["init"] == {"already": "done"}
        assert graph.succeeded

    def test_fan_in_waits_for_all_dependencies(self, no_sleep):
        graph = TaskGraph(
            tasks=[
                Task(id="init", type=TaskType.INIT_REPO),
                Task(id="scaffold", type=TaskType.SCAFFOLD_PAGES, dependencies=("init",)),
                Task(id="config", type=TaskType.CONFIG_ENV, dependencies=("init",)),
                Task(id="commit", type=TaskType.COMMIT_PREVIEW, dependencies=("scaffold", "config")),
            ]
        )
        graph.get("scaffold").transition(TaskStatus.SKIPPED)
        operations = all_succeeding()
        operations[TaskType.COMMIT_PREVIEW] = MagicMock()

        make_executor(operations, no_sleep).execute(graph)

        operations[TaskType.COMMIT_PREVIEW].assert_not_called()
        assert graph.get("config").status is TaskStatus.COMPLETED
        assert graph.get("commit").status is TaskStatus.SKIPPED

    def test_invalid_graph_is_rejected_before_running(self, no_sleep):
        graph = TaskGraph(tasks=[Task(id="a", type=TaskType.INIT_REPO, dependencies=("ghost",))])
        operations = {TaskType.INIT_REPO: MagicMock()}

        with pytest.raises(GraphError):
            make_executor(operations, no_sleep).execute(graph)
        operations[TaskType.INIT_REPO].assert_not_called()


class RecordingProcessor(PipelineProcessor):
    def __init__(self):
        self.events = []

    def run_started(self, graph):
        self.events.append(("run_started",))

    def task_started(self, task):
        self.events.append(("started", task.id))

    def task_retrying(self, task, attempt, error, delay):
        self.events.append(("retrying", task.id, attempt))

    def task_completed(self, task):
        self.events.append(("completed", task.id))

    def task_failed(self, task, error):
        self.events.append(("failed", task.id))

    def task_skipped(self, task, reason):
        self.events.append(("skipped", task.id))

    def run_completed(self, graph):
        self.events.append(("run_completed",))


class TestProcessorNotifications:
    def test_event_sequence(self, graph, no_sleep):
        processor = RecordingProcessor()
        operations = all_succeeding()
        operations[TaskType.PROVISION_BACKENDS] = fail_times(1)
        operations[TaskType.CONFIG_ENV] = fail_times(1)

        with pytest.raises(TaskExecutionError):
            make_executor(operations, no_sleep, processors=[processor]).execute(graph)

        assert processor.events == [
            ("run_started",),
            ("started", "init"),
            ("completed", "init"),
            ("started", "provision"),
            ("retrying", "provision", 1),
            ("completed", "provision"),
            ("started", "config"),
            ("failed", "config"),
            ("skipped", "scaffold"),
            ("skipped", "commit"),
            ("skipped", "deploy"),
            ("skipped", "verify"),
            ("run_completed",),
        ]
