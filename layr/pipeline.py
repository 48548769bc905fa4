import time
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any

import requests
from pydantic import Field

from layr.adapters.channel import ManagedChannelClient
from layr.adapters.factory import AdapterFactory
from layr.blueprints.classifier import BlueprintClassifier, default_classifier
from layr.constants import BlueprintId, TaskStatus, TaskType
from layr.exceptions import IntentValidationError, TaskExecutionError
from layr.executor import TaskExecutor
from layr.graph import TaskGraphBuilder
from layr.logger import logger
from layr.models.base import LayrBaseModel
from layr.models.intent import Intent
from layr.models.task import TaskGraph
from layr.operations import PipelineContext, PipelineOperations
from layr.processors import DefaultPipelineProcessor, PipelineProcessor
from layr.retry import RetryPolicy
from layr.settings import LayrSettings
from layr.utils import print_pipeline_overview


class PipelineResult(LayrBaseModel):
    """
    Outcome of one pipeline run.

    `success` is true only when every task completed and a preview URL exists.
    On failure, `failed_task` and `error` describe the first failed task.
    """

    success: bool
    blueprint: BlueprintId | None = None
    preview_url: str | None = None
    production_url: str | None = None
    failed_task: str | None = None
    error: str | None = None
    statuses: dict[str, TaskStatus] = Field(default_factory=dict)


def load_intent(source: Intent | Mapping[str, Any] | str | Path) -> Intent:
    """
    Accept an Intent, a raw mapping, or a path to a JSON/YAML intent file.

    Raises:
        IntentValidationError: If the record is malformed.
        FileNotFoundError: If a path is given that does not exist.
    """
    if isinstance(source, Intent):
        return source
    if isinstance(source, Mapping):
        return Intent.from_dict(dict(source))
    if isinstance(source, str | Path):
        path = Path(source)
        if not path.is_file():
            raise FileNotFoundError(f"Intent file not found: {path}")
        return Intent.from_file(path)
    raise IntentValidationError(f"Cannot load an intent from {type(source).__name__}")


class LayrPipeline:
    """
    Runs an intent end to end: classify, build the task graph, execute it.

    Each call to `run()` gets fresh adapters (and so a fresh degrade state) and a
    fresh graph; only the classifier cache is shared across runs.

    Args:
        settings: Layr settings; loaded with `LayrSettings.load()` when omitted.
        channel: Managed channel client; built from settings when omitted.
        processors: Execution observers; a DefaultPipelineProcessor when omitted.
        retry_policy: Retry policy for flaky steps; derived from settings when omitted.
        graph_builder: Task graph builder; the default seven-step chain when omitted.
        classifier: Blueprint classifier; the process-wide cached one when omitted.
        http_session: Session for direct API calls and smoke checks.
        sleep: Wait function used between retry attempts.
        show_overview: Print a rich overview panel before executing.
    """

    def __init__(
        self,
        settings: LayrSettings | None = None,
        channel: ManagedChannelClient | None = None,
        processors: list[PipelineProcessor] | None = None,
        retry_policy: RetryPolicy | None = None,
        graph_builder: TaskGraphBuilder | None = None,
        classifier: BlueprintClassifier | None = None,
        http_session: requests.Session | None = None,
        sleep: Callable[[float], None] = time.sleep,
        show_overview: bool = False,
    ):
        self.settings = settings or LayrSettings.load()
        self.channel = channel
        self.processors = processors if processors is not None else [DefaultPipelineProcessor()]
        self.retry_policy = retry_policy or RetryPolicy(
            max_attempts=self.settings.max_retries,
            base_delay=self.settings.retry_backoff,
            max_delay=self.settings.max_backoff,
        )
        self.graph_builder = graph_builder or TaskGraphBuilder()
        self.classifier = classifier or default_classifier
        self.http_session = http_session
        self.sleep = sleep
        self.show_overview = show_overview
        self.last_graph: TaskGraph | None = None

    def run(self, intent: Intent | Mapping[str, Any] | str | Path) -> PipelineResult:
        """
        Execute the pipeline for an intent.

        Task failures are reported through the result rather than raised. Errors
        that prevent the run from starting (an invalid intent, a bad graph
        definition) still propagate.
        """
        intent = load_intent(intent)
        if self.http_session is not None:
            return self._run(intent, self.http_session)
        with requests.Session() as session:
            return self._run(intent, session)

    def _run(self, intent: Intent, session: requests.Session) -> PipelineResult:
        blueprint = self.classifier.classify(intent)
        graph = self.graph_builder.build(blueprint, intent)
        self.last_graph = graph

        channel = self.channel or ManagedChannelClient.from_settings(self.settings)
        adapters = AdapterFactory(self.settings, channel=channel, session=session).create_all()
        context = PipelineContext(intent, blueprint, self.settings, adapters, http=session)
        executor = TaskExecutor(
            PipelineOperations(context).as_mapping(),
            retry_policy=self.retry_policy,
            processors=self.processors,
            sleep=self.sleep,
        )

        if self.show_overview:
            print_pipeline_overview(intent, blueprint, graph, channel.availability(), self.retry_policy.max_attempts)

        logger.info("Running %s pipeline for '%s'", blueprint, intent.slug)
        try:
            executor.execute(graph)
        except TaskExecutionError as e:
            logger.info("Pipeline stopped at task '%s'", e.task_id)
            return self._result(graph, blueprint, failed_task=e.task_id, error=e.reason)

        return self._result(graph, blueprint)

    @staticmethod
    def _result(
        graph: TaskGraph,
        blueprint: BlueprintId,
        failed_task: str | None = None,
        error: str | None = None,
    ) -> PipelineResult:
        preview_url = graph.output_of(TaskType.COMMIT_PREVIEW).get("preview_url") or None
        production_url = graph.output_of(TaskType.DEPLOY_PROD).get("production_url") or None
        return PipelineResult(
            success=failed_task is None and graph.succeeded and bool(preview_url),
            blueprint=blueprint,
            preview_url=preview_url,
            production_url=production_url,
            failed_task=failed_task,
            error=error,
            statuses=graph.statuses(),
        )
