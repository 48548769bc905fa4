# ruff: noqa: T201
"""
Execution processors.

Processors observe a pipeline run: the executor calls their hooks as tasks
start, retry, complete, fail, or get skipped. They never influence control
flow. DefaultPipelineProcessor prints progress and a closing summary.
"""

import threading
from datetime import datetime

from colorama import Fore, Style, init
from tabulate import tabulate

from layr.models.task import Task, TaskGraph

init(autoreset=True)

# Keeps lines from concurrent runs in the same process from interleaving.
output_lock = threading.Lock()


class PipelineProcessor:
    """Base processor; every hook is a no-op so subclasses override only what they need."""

    def run_started(self, graph: TaskGraph) -> None:
        pass

    def task_started(self, task: Task) -> None:
        pass

    def task_retrying(self, task: Task, attempt: int, error: Exception, delay: float) -> None:
        pass

    def task_completed(self, task: Task) -> None:
        pass

    def task_failed(self, task: Task, error: Exception) -> None:
        pass

    def task_skipped(self, task: Task, reason: str) -> None:
        pass

    def run_completed(self, graph: TaskGraph) -> None:
        pass


class DefaultPipelineProcessor(PipelineProcessor):
    """Prints per-task progress with timings and a final status table."""

    def __init__(self, print_summary: bool = True):
        self.print_summary = print_summary
        self.start_times: dict[str, datetime] = {}
        self.run_start_time: datetime | None = None
        self.completed = 0
        self.failed = 0
        self.skipped = 0
        self.retries = 0

    def run_started(self, graph: TaskGraph) -> None:
        self.run_start_time = datetime.now()
        with output_lock:
            print(f"{Style.BRIGHT}Executing task graph with {len(graph.tasks)} tasks{Style.RESET_ALL}")

    def task_started(self, task: Task) -> None:
        self.start_times[task.id] = datetime.now()
        with output_lock:
            print(f"{Fore.CYAN}▶ {task.id} ({task.type}){Style.RESET_ALL}")

    def task_retrying(self, task: Task, attempt: int, error: Exception, delay: float) -> None:
        self.retries += 1
        with output_lock:
            print(f"{Fore.YELLOW}  ↻ {task.id}: attempt {attempt} failed ({error}); retrying in {delay:.1f}s")

    def task_completed(self, task: Task) -> None:
        self.completed += 1
        with output_lock:
            print(f"{Fore.GREEN}✔ {task.id} completed in {self._elapsed(task)}")

    def task_failed(self, task: Task, error: Exception) -> None:
        self.failed += 1
        with output_lock:
            print(f"{Fore.RED}{Style.BRIGHT}✘ {task.id} failed after {task.attempts} attempt(s): {error}")

    def task_skipped(self, task: Task, reason: str) -> None:
        self.skipped += 1
        with output_lock:
            print(f"{Fore.WHITE}{Style.DIM}⏭ {task.id} skipped: {reason}")

    def run_completed(self, graph: TaskGraph) -> None:
        if self.print_summary:
            self.print_final_summary(graph)

    def print_final_summary(self, graph: TaskGraph) -> None:
        """Print one row per task with its status, attempts, and error."""
        rows = [[task.id, task.type, task.status, task.attempts, task.error or ""] for task in graph.tasks]
        duration = ""
        if self.run_start_time:
            duration = f" in {(datetime.now() - self.run_start_time).total_seconds():.2f}s"
        color = Fore.GREEN if graph.succeeded else Fore.RED
        with output_lock:
            print()
            print(f"{color}{Style.BRIGHT}━━━ RUN SUMMARY{duration} ━━━{Style.RESET_ALL}")
            print(tabulate(rows, headers=["Task", "Type", "Status", "Attempts", "Error"], tablefmt="simple"))
            print(
                f"completed={self.completed} failed={self.failed} "
                f"skipped={self.skipped} retries={self.retries}"
            )
            print()

    def _elapsed(self, task: Task) -> str:
        started = self.start_times.get(task.id)
        if not started:
            return "?"
        return f"{(datetime.now() - started).total_seconds():.2f}s"
