from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, TypeVar

from rich.console import Console, Group
from rich.padding import Padding
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from layr.blueprints.catalog import get_blueprint
from layr.constants import PROTECTED_KEYWORDS, BlueprintId, ServiceFamily
from layr.exceptions import OperationTimeoutError
from layr.models.intent import Intent
from layr.models.task import TaskGraph

T = TypeVar("T")


def run_with_timeout(
    fn: Callable[..., T],
    timeout: float | None,
    *args: Any,
    service: str = "",
    **kwargs: Any,
) -> T:
    """
    Call `fn(*args, **kwargs)` on a worker thread and wait at most `timeout` seconds.

    The worker is abandoned on overrun, not interrupted; whatever it eventually
    returns is discarded.

    Args:
        fn: Callable to run.
        timeout: Budget in seconds; None or a non-positive value means no limit.
        *args: Positional arguments for `fn`.
        service: Service name used to label a timeout error.
        **kwargs: Keyword arguments for `fn`.

    Returns:
        Whatever `fn` returns.

    Raises:
        OperationTimeoutError: If the budget runs out first.
        Exception: Anything `fn` itself raises.
    """
    if not timeout or timeout <= 0:
        return fn(*args, **kwargs)

    pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="layr-op")
    try:
        future = pool.submit(fn, *args, **kwargs)
        try:
            return future.result(timeout=timeout)
        except FutureTimeoutError as e:
            future.cancel()
            name = getattr(fn, "__name__", repr(fn))
            raise OperationTimeoutError(
                f"Operation '{name}' timed out after {timeout:g}s",
                service=service,
                context={"timeout": timeout},
            ) from e
    finally:
        pool.shutdown(wait=False)


def mask_value(key: str, value: Any) -> str:
    """Format a value for display, masking anything stored under a protected keyword."""
    if value and any(keyword in key.lower() for keyword in PROTECTED_KEYWORDS):
        return "********"
    return str(value)


def print_pipeline_overview(
    intent: Intent,
    blueprint_id: BlueprintId,
    graph: TaskGraph,
    channel_availability: dict[ServiceFamily, bool],
    max_attempts: int,
) -> None:
    """
    Print what is about to run before the executor starts.

    Args:
        intent: The validated intent.
        blueprint_id: The blueprint the intent was classified into.
        graph: The freshly built task graph.
        channel_availability: Initial managed channel availability per family.
        max_attempts: Attempt bound for flaky task types.
    """
    console = Console()
    blueprint = get_blueprint(blueprint_id)

    table = Table(show_header=False, box=None)
    table.add_column("Property", style="bold cyan", no_wrap=True)
    table.add_column("Value", style="yellow")

    table.add_row("Goal", intent.goal)
    table.add_row("Audience", intent.audience.value)
    table.add_row("Capabilities", ", ".join(sorted(intent.capabilities)) or "-")
    table.add_row("Blueprint", f"{blueprint.name} ({blueprint.id})")
    table.add_row("Stack", ", ".join(blueprint.stack))
    table.add_row("Max Attempts", str(max_attempts))
    table.add_row(
        "Managed Channel",
        ", ".join(f"{family}={'on' if on else 'off'}" for family, on in channel_availability.items()),
    )

    steps = Table(show_header=True, box=None)
    steps.add_column("Task", style="bold magenta", no_wrap=True)
    steps.add_column("Type", style="cyan")
    steps.add_column("Depends On", style="blue")
    for task in graph.tasks:
        steps.add_row(task.id, task.type.value, ", ".join(task.dependencies) or "-")

    panel = Panel(
        Group(table, Text("\n"), Padding.indent(Text("Pipeline", style="bold cyan"), 1), Padding.indent(steps, 2)),
        title=Text("Layr Pipeline Overview", style="bold"),
        border_style="green",
        width=100,
    )
    console.print(panel)
