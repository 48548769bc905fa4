from graphlib import CycleError, TopologicalSorter
from typing import Any

from pydantic import Field, field_validator

from layr.constants import TASK_STATUS_TRANSITIONS, TaskStatus, TaskType
from layr.exceptions import GraphError, TaskStateError
from layr.models.base import LayrBaseModel


class Task(LayrBaseModel):
    """
    A single pipeline step.

    Tasks are created `pending` by the graph builder and afterwards mutated only
    by the executor, through `transition()`, which enforces the status state
    machine: pending -> running -> completed | failed, pending -> skipped.
    """

    id: str = Field(min_length=1)
    type: TaskType
    status: TaskStatus = TaskStatus.PENDING
    dependencies: tuple[str, ...] = ()
    input: dict[str, Any] = Field(default_factory=dict)
    output: dict[str, Any] | None = None
    error: str | None = None
    attempts: int = 0

    @field_validator("dependencies", mode="before")
    @classmethod
    def dedupe_dependencies(cls, v: Any) -> tuple[str, ...]:
        if v is None:
            return ()
        return tuple(dict.fromkeys(v))

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def transition(self, new_status: TaskStatus, *, output: dict[str, Any] | None = None, error: str = "") -> None:
        """
        Move the task to `new_status`.

        Args:
            new_status: Target status.
            output: Operation output, recorded when completing.
            error: Failure message, recorded when failing.

        Raises:
            TaskStateError: If the move is not allowed from the current status.
        """
        if new_status not in TASK_STATUS_TRANSITIONS[self.status]:
            raise TaskStateError(f"cannot move from '{self.status}' to '{new_status}'", task_id=self.id)

        if new_status is TaskStatus.COMPLETED:
            self.output = output or {}
        elif new_status is TaskStatus.FAILED:
            self.error = error or "unknown error"
        self.status = new_status


class TaskGraph(LayrBaseModel):
    """
    Ordered tasks plus the shared artifacts map (task id -> output).

    Declaration order is the execution order; `validate_structure()` checks the
    graph is a proper DAG whose dependencies all refer to tasks in the graph.
    """

    tasks: list[Task] = Field(default_factory=list)
    artifacts: dict[str, Any] = Field(default_factory=dict)

    def get(self, task_id: str) -> Task:
        for task in self.tasks:
            if task.id == task_id:
                return task
        raise GraphError(f"Unknown task id '{task_id}'")

    def first_of_type(self, task_type: TaskType) -> Task | None:
        return next((task for task in self.tasks if task.type is task_type), None)

    def output_of(self, task_type: TaskType) -> dict[str, Any]:
        """Artifact produced by the first task of a type, or {} if it has not completed."""
        task = self.first_of_type(task_type)
        if task is None:
            return {}
        return self.artifacts.get(task.id, {})

    def first_failed(self) -> Task | None:
        return next((task for task in self.tasks if task.status is TaskStatus.FAILED), None)

    def statuses(self) -> dict[str, TaskStatus]:
        return {task.id: task.status for task in self.tasks}

    @property
    def succeeded(self) -> bool:
        return bool(self.tasks) and all(task.status is TaskStatus.COMPLETED for task in self.tasks)

    def validate_structure(self) -> "TaskGraph":
        """
        Reject duplicate ids, dangling dependency references, and cycles.

        Returns:
            The graph itself, for chaining.

        Raises:
            GraphError: Describing the first structural problem found.
        """
        ids = [task.id for task in self.tasks]
        duplicates = sorted({task_id for task_id in ids if ids.count(task_id) > 1})
        if duplicates:
            raise GraphError(f"Duplicate task ids: {duplicates}")

        known = set(ids)
        for task in self.tasks:
            dangling = [dep for dep in task.dependencies if dep not in known]
            if dangling:
                raise GraphError(f"Task '{task.id}' depends on unknown tasks: {dangling}")

        sorter = TopologicalSorter({task.id: set(task.dependencies) for task in self.tasks})
        try:
            sorter.prepare()
        except CycleError as e:
            raise GraphError(f"Dependency cycle detected: {' -> '.join(e.args[1])}") from e
        return self
