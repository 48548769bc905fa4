from layr.constants import BlueprintId, TaskStatus
from layr.exceptions import ProvisioningError
from layr.graph import build_task_graph
from layr.processors import DefaultPipelineProcessor, PipelineProcessor


def test_base_processor_hooks_are_noops():
    graph = build_task_graph(BlueprintId.STATIC_LANDING)
    processor = PipelineProcessor()
    task = graph.tasks[0]

    processor.run_started(graph)
    processor.task_started(task)
    processor.task_retrying(task, 1, ProvisioningError("x"), 1.0)
    processor.task_completed(task)
    processor.task_failed(task, ProvisioningError("x"))
    processor.task_skipped(task, "reason")
    processor.run_completed(graph)


def test_default_processor_counts_and_prints(capsys):
    graph = build_task_graph(BlueprintId.STATIC_LANDING)
    processor = DefaultPipelineProcessor()
    init, provision, config = graph.tasks[:3]

    processor.run_started(graph)
    init.transition(TaskStatus.RUNNING)
    processor.task_started(init)
    init.transition(TaskStatus.COMPLETED)
    processor.task_completed(init)

    provision.transition(TaskStatus.RUNNING)
    processor.task_started(provision)
    processor.task_retrying(provision, 1, ProvisioningError("busy"), 1.0)
    provision.transition(TaskStatus.FAILED, error="busy")
    processor.task_failed(provision, ProvisioningError("busy"))

    config.transition(TaskStatus.SKIPPED)
    processor.task_skipped(config, "run aborted")
    processor.run_completed(graph)

    out = capsys.readouterr().out
    assert (processor.completed, processor.failed, processor.skipped, processor.retries) == (1, 1, 1, 1)
    assert "Executing task graph with 7 tasks" in out
    assert "init completed" in out
    assert "retrying in 1.0s" in out
    assert "config skipped: run aborted" in out
    assert "RUN SUMMARY" in out
    assert "completed=1 failed=1 skipped=1 retries=1" in out


def test_summary_can_be_disabled(capsys):
    graph = build_task_graph(BlueprintId.STATIC_LANDING)
    DefaultPipelineProcessor(print_summary=False).run_completed(graph)
    assert "RUN SUMMARY" not in capsys.readouterr().out
