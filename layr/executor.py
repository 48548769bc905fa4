import time
from collections.abc import Callable, Iterable, Mapping
from functools import partial
from typing import Any

from layr.constants import FLAKY_TASK_TYPES, TaskStatus, TaskType
from layr.exceptions import ConfigurationError, TaskExecutionError, format_error
from layr.logger import logger
from layr.models.task import Task, TaskGraph
from layr.processors import PipelineProcessor
from layr.retry import NO_RETRY, RetryPolicy, call_with_retry

# An operation receives its task and the graph (for upstream artifacts) and returns the task output.
TaskOperation = Callable[[Task, TaskGraph], Mapping[str, Any] | None]
RetryHook = Callable[[Task, int, Exception, float], None]


class TaskExecutor:
    """
    Walks a TaskGraph in declaration order and runs each task's operation.

    Execution rules:
    - Tasks already in a terminal state are left as they are.
    - A task runs only when every dependency is `completed`; otherwise it is
      marked `skipped` and the walk continues.
    - Operations for flaky task types run under the retry policy; all others
      run exactly once.
    - A successful operation's output is stored on the task and in
      `graph.artifacts[task.id]`.
    - The first task that fails for good is marked `failed`, every task still
      pending is marked `skipped`, and a single TaskExecutionError is raised.
      Outputs of tasks that already completed stay in the artifacts map.

    Args:
        operations: Mapping of task type to the callable that performs it.
        retry_policy: Policy applied to flaky task types.
        flaky_types: Task types eligible for retries.
        processors: Observers notified of task lifecycle events.
        on_retry: Extra callback fired as on_retry(task, attempt, error, delay) before each wait.
        sleep: Wait function used between attempts.
    """

    def __init__(
        self,
        operations: Mapping[TaskType, TaskOperation],
        retry_policy: RetryPolicy | None = None,
        flaky_types: Iterable[TaskType] = FLAKY_TASK_TYPES,
        processors: list[PipelineProcessor] | None = None,
        on_retry: RetryHook | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.operations = dict(operations)
        self.retry_policy = retry_policy or RetryPolicy()
        self.flaky_types = frozenset(flaky_types)
        self.processors = processors or []
        self.on_retry = on_retry
        self.sleep = sleep

    def execute(self, graph: TaskGraph) -> TaskGraph:
        """
        Run the graph, mutating its tasks and artifacts in place.

        Returns:
            The same graph, with every task completed.

        Raises:
            GraphError: If the graph is structurally invalid.
            TaskExecutionError: For the first failed task, whether it failed
                during this run or was already failed beforehand.
        """
        graph.validate_structure()
        self._notify("run_started", graph)
        try:
            for task in graph.tasks:
                if task.is_terminal:
                    logger.debug("Task '%s' already %s, leaving it untouched", task.id, task.status)
                    continue

                unmet = [dep for dep in task.dependencies if graph.get(dep).status is not TaskStatus.COMPLETED]
                if unmet:
                    self._skip(task, f"dependencies not completed: {', '.join(unmet)}")
                    continue

                self._run_task(task, graph)

            failed = graph.first_failed()
            if failed is not None:
                raise TaskExecutionError(failed.id, failed.error or "unknown error")
        finally:
            self._notify("run_completed", graph)
        return graph

    def _run_task(self, task: Task, graph: TaskGraph) -> None:
        task.transition(TaskStatus.RUNNING)
        self._notify("task_started", task)
        logger.info("Executing task: %s (%s)", task.id, task.type)

        operation = self.operations.get(task.type)
        policy = self.retry_policy if task.type in self.flaky_types else NO_RETRY

        def attempt() -> Mapping[str, Any] | None:
            task.attempts += 1
            if operation is None:
                raise ConfigurationError(f"No operation registered for task type '{task.type}'")
            return operation(task, graph)

        try:
            output = call_with_retry(attempt, policy, on_retry=partial(self._handle_retry, task), sleep=self.sleep)
        except Exception as e:
            message = str(e) or e.__class__.__name__
            task.transition(TaskStatus.FAILED, error=message)
            logger.error("Task '%s' failed after %d attempt(s): %s", task.id, task.attempts, format_error(e))
            self._notify("task_failed", task, e)
            self._abort_remaining(graph, task)
            raise TaskExecutionError(task.id, message) from e

        result = dict(output or {})
        task.transition(TaskStatus.COMPLETED, output=result)
        graph.artifacts[task.id] = result
        logger.info("Completed task: %s", task.id)
        self._notify("task_completed", task)

    def _handle_retry(self, task: Task, attempt: int, error: Exception, delay: float) -> None:
        logger.warning(
            "Task '%s' attempt %d/%d failed: %s. Retrying in %.2fs",
            task.id,
            attempt,
            self.retry_policy.max_attempts,
            error,
            delay,
        )
        self._notify("task_retrying", task, attempt, error, delay)
        if self.on_retry:
            self.on_retry(task, attempt, error, delay)

    def _abort_remaining(self, graph: TaskGraph, failed: Task) -> None:
        for task in graph.tasks:
            if task.status is TaskStatus.PENDING:
                self._skip(task, f"run aborted after '{failed.id}' failed")

    def _skip(self, task: Task, reason: str) -> None:
        task.transition(TaskStatus.SKIPPED)
        logger.info("Skipping task '%s': %s", task.id, reason)
        self._notify("task_skipped", task, reason)

    def _notify(self, hook: str, *args: Any) -> None:
        for processor in self.processors:
            getattr(processor, hook)(*args)
