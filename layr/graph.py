from collections.abc import Sequence
from typing import Any

from layr.constants import DEFAULT_PIPELINE_STEPS, BlueprintId, TaskType
from layr.exceptions import GraphError
from layr.models.intent import Intent
from layr.models.task import Task, TaskGraph

# A pipeline definition: (task id, task type, dependency ids) in declaration order.
StepDefinition = tuple[str, TaskType, tuple[str, ...]]


def linear_chain(steps: Sequence[tuple[str, TaskType]]) -> list[StepDefinition]:
    """Turn ordered (id, type) pairs into a chain where each step depends on its predecessor."""
    chain: list[StepDefinition] = []
    previous: str | None = None
    for task_id, task_type in steps:
        chain.append((task_id, task_type, (previous,) if previous else ()))
        previous = task_id
    return chain


class TaskGraphBuilder:
    """
    Produces a fresh TaskGraph for a blueprint.

    Every blueprint currently shares the same seven-step chain. Blueprint-specific
    pipelines are plain data registered with `register_pipeline()`; the executor
    evaluates dependency sets, so richer DAGs need no executor changes.
    """

    def __init__(self) -> None:
        self._default_steps: list[StepDefinition] = linear_chain(DEFAULT_PIPELINE_STEPS)
        self._pipelines: dict[BlueprintId, list[StepDefinition]] = {}

    def register_pipeline(self, blueprint_id: BlueprintId | str, steps: Sequence[StepDefinition]) -> None:
        """
        Override the pipeline for one blueprint.

        Args:
            blueprint_id: Blueprint the pipeline applies to.
            steps: (task id, task type, dependency ids) in execution order.

        Raises:
            GraphError: If the steps do not form a valid DAG.
        """
        definition = [(task_id, TaskType(task_type), tuple(deps)) for task_id, task_type, deps in steps]
        self._assemble(definition, {}).validate_structure()

        # The executor walks declaration order, so a dependency must be declared first.
        seen: set[str] = set()
        for task_id, _, deps in definition:
            late = [dep for dep in deps if dep not in seen]
            if late:
                raise GraphError(f"Task '{task_id}' is declared before its dependencies: {late}")
            seen.add(task_id)

        self._pipelines[BlueprintId(blueprint_id)] = definition

    def steps_for(self, blueprint_id: BlueprintId | str) -> list[StepDefinition]:
        return list(self._pipelines.get(BlueprintId(blueprint_id), self._default_steps))

    def build(self, blueprint_id: BlueprintId | str, intent: Intent | None = None) -> TaskGraph:
        """
        Build the task graph for a blueprint.

        Args:
            blueprint_id: The classified blueprint.
            intent: Optional intent, recorded as every task's input payload.

        Returns:
            A validated graph with all tasks pending and empty artifacts.
        """
        try:
            blueprint = BlueprintId(blueprint_id)
        except ValueError as e:
            raise GraphError(f"Unknown blueprint '{blueprint_id}'") from e

        task_input: dict[str, Any] = {"blueprint": blueprint.value}
        if intent is not None:
            task_input["intent"] = intent.to_dict()

        return self._assemble(self.steps_for(blueprint), task_input).validate_structure()

    @staticmethod
    def _assemble(steps: Sequence[StepDefinition], task_input: dict[str, Any]) -> TaskGraph:
        tasks = [
            Task(id=task_id, type=task_type, dependencies=deps, input=dict(task_input))
            for task_id, task_type, deps in steps
        ]
        return TaskGraph(tasks=tasks)


def build_task_graph(blueprint_id: BlueprintId | str, intent: Intent | None = None) -> TaskGraph:
    """Build the default graph for a blueprint."""
    return TaskGraphBuilder().build(blueprint_id, intent)
