import sys
from typing import Any

import typer

from layr.builder import LayrPipelineBuilder
from layr.cli.exceptions import CLIRunError
from layr.exceptions import LayrError
from layr.logger import logger
from layr.pipeline import PipelineResult, load_intent

MAX_RETRIES_OPTION = typer.Option(
    None,
    "--max-retries",
    "-r",
    min=1,
    max=10,
    help="Attempt bound for flaky steps (provisioning and deployments). Overrides settings.",
)

MANAGED_CHANNEL_OPTION = typer.Option(
    None,
    "--managed-channel/--no-managed-channel",
    help="Force the managed channel on or off for every service family. Overrides settings.",
)

OVERVIEW_OPTION = typer.Option(
    True,
    "--overview/--no-overview",
    help="Print the pipeline overview panel before executing.",
)


def collect_overrides(max_retries: int | None, managed_channel: bool | None) -> dict[str, Any]:
    """Settings overrides for the options the user actually passed."""
    overrides: dict[str, Any] = {}
    if max_retries is not None:
        overrides["max_retries"] = max_retries
    if managed_channel is not None:
        overrides["managed_channel_enabled"] = managed_channel
        overrides["managed_channels"] = {}
    return overrides


def get_pipeline_builder(settings: str | None, overrides: dict[str, Any], overview: bool) -> LayrPipelineBuilder:
    builder = LayrPipelineBuilder().with_overview(overview)
    if settings:
        builder.with_settings_path(settings)
    if overrides:
        builder.with_settings_overrides(**overrides)
    return builder


def report_result(result: PipelineResult) -> None:
    if result.success:
        typer.secho(f"Preview deployed: {result.preview_url}", fg=typer.colors.GREEN, bold=True)
        if result.production_url:
            typer.secho(f"Production: {result.production_url}", fg=typer.colors.GREEN)
        return

    if result.failed_task:
        typer.secho(
            f"Pipeline failed at task '{result.failed_task}': {result.error}",
            fg=typer.colors.RED,
            bold=True,
        )
    else:
        typer.secho("Pipeline finished without a preview URL", fg=typer.colors.RED, bold=True)


def run(
    ctx: typer.Context,
    intent_file: str = typer.Argument(..., help="Path to a JSON or YAML intent file"),
    max_retries: int | None = MAX_RETRIES_OPTION,
    managed_channel: bool | None = MANAGED_CHANNEL_OPTION,
    overview: bool = OVERVIEW_OPTION,
) -> None:
    """
    Classifies an intent, provisions its backends, and deploys a preview.
    """
    try:
        settings = ctx.obj.get("settings") if ctx.obj else None
        intent = load_intent(intent_file)

        builder = get_pipeline_builder(settings, collect_overrides(max_retries, managed_channel), overview)
        pipeline = builder.build()

        logger.set_execution_context(
            run_name=intent.slug,
            log_dir=pipeline.settings.log_dir,
            log_level=pipeline.settings.log_level,
        )
        try:
            result = pipeline.run(intent)
        finally:
            logger.clear_execution_context()

        report_result(result)
        if not result.success:
            sys.exit(1)

    except LayrError as e:
        CLIRunError(
            message=f"Layr error while running {intent_file}: {e}",
            original_exception=e,
            exit_code=102,
        ).show()
        raise typer.Exit(code=102)  # noqa: B904

    except FileNotFoundError as e:
        CLIRunError(
            message=f"File not found: {e}",
            hint=f"Check that the file '{intent_file}' exists and is accessible.",
            original_exception=e,
            exit_code=103,
        ).show()
        raise typer.Exit(code=103)  # noqa: B904

    except PermissionError as e:
        CLIRunError(
            message=f"Permission denied: {e}",
            hint="Check that you have sufficient permissions to access the required files.",
            original_exception=e,
            exit_code=104,
        ).show()
        raise typer.Exit(code=104)  # noqa: B904

    except Exception as e:
        CLIRunError(
            message=f"Unexpected error while running {intent_file}: {e}",
            hint="This may be a bug. Please report it if the issue persists.",
            original_exception=e,
            exit_code=105,
        ).show()
        raise typer.Exit(code=105)  # noqa: B904
