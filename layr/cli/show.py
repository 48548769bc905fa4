import json
from typing import Any

import typer
import yaml
from tabulate import tabulate
from termcolor import colored

from layr.blueprints import BLUEPRINTS, classify, get_blueprint, rank_blueprints
from layr.cli.exceptions import CLIShowError
from layr.exceptions import LayrError
from layr.models.intent import Intent
from layr.pipeline import load_intent
from layr.settings import LayrSettings


def show(
    ctx: typer.Context,
    blueprints: bool = typer.Option(False, "--blueprints", "-b", help="Display the blueprint catalog"),
    settings: bool = typer.Option(False, "--settings", "-s", help="Display current Layr settings"),
    rank: str | None = typer.Option(
        None, "--rank", "-r", help="Rank every blueprint by similarity to the given intent file"
    ),
    classify_file: str | None = typer.Option(
        None, "--classify", "-c", help="Display the blueprint the given intent file is classified into"
    ),
    all: bool = typer.Option(False, "--all", "-a", help="Display the blueprint catalog and settings"),
) -> None:
    """
    Displays summary info about Layr.
    """
    if not any([blueprints, settings, rank, classify_file, all]):
        raise typer.BadParameter(
            "You must provide at least one option: --blueprints, --settings, --rank, --classify, or --all."
        )

    try:
        if blueprints or all:
            show_formatted_table(
                "BLUEPRINT CATALOG",
                render_blueprints_table_data(),
                ["Blueprint", "Description", "Features", "Stack"],
            )

        if settings or all:
            settings_path = ctx.obj.get("settings") if ctx.obj else None
            layr_settings = LayrSettings.load(settings_file=settings_path or None)
            show_formatted_table("LAYR SETTINGS", render_table_data(layr_settings.as_dict), ["Setting", "Value"])

        if rank:
            intent = load_intent(rank)
            show_formatted_table(
                f"BLUEPRINT RANKING: {intent.slug}",
                render_ranking_table_data(intent),
                ["Blueprint", "Match", "Shared Capabilities"],
            )

        if classify_file:
            intent = load_intent(classify_file)
            blueprint = get_blueprint(classify(intent))
            typer.echo(
                f"{colored(intent.slug, 'cyan', attrs=['bold'])} -> "
                f"{colored(blueprint.name, 'yellow', attrs=['bold'])} ({blueprint.id})"
            )

    except LayrError as e:
        CLIShowError(
            message=f"Layr configuration error: {e}",
            original_exception=e,
            exit_code=2,
        ).show()
        raise typer.Exit(code=2) from None

    except yaml.YAMLError as e:
        CLIShowError(
            message=f"Error parsing YAML file: {e}",
            hint="Check your intent and settings files for YAML syntax errors.",
            original_exception=e,
            exit_code=2,
        ).show()
        raise typer.Exit(code=2) from None

    except (FileNotFoundError, PermissionError) as e:
        CLIShowError(
            message=f"File system error: {e}",
            hint="Check file permissions and ensure all referenced files exist.",
            original_exception=e,
            exit_code=2,
        ).show()
        raise typer.Exit(code=2) from None

    except Exception as e:
        CLIShowError(
            message=f"Failed to show requested information: {e}",
            hint="Check your configuration and try again.",
            original_exception=e,
            exit_code=2,
        ).show()
        raise typer.Exit(code=2) from None


def show_formatted_table(banner_text: str, table_data: list[list[str]], headers: list[str]) -> None:
    """Display rows in a rounded grid under a centered banner. Nothing is printed for empty data."""
    if not table_data:
        return

    colored_headers = get_colored_headers(headers, "blue")
    colalign = ["center"] + ["left"] * (len(headers) - 1)
    table = tabulate(table_data, headers=colored_headers, tablefmt="rounded_grid", colalign=colalign)
    display_banner(banner_text, table)
    typer.echo(table)


def render_blueprints_table_data() -> list[list[str]]:
    return [
        [
            colored(blueprint.id.value, "cyan", attrs=["bold"]),
            colored(blueprint.description, "yellow"),
            ", ".join(blueprint.features),
            colored(", ".join(blueprint.stack), "light_green"),
        ]
        for blueprint in BLUEPRINTS.values()
    ]


def render_ranking_table_data(intent: Intent) -> list[list[str]]:
    """Ranking rows, best first. The ranking is advisory; `--classify` shows the executed choice."""
    rows = []
    for score in rank_blueprints(intent):
        shared = sorted(intent.capabilities & score.blueprint.capabilities)
        rows.append(
            [
                colored(score.blueprint.id.value, "cyan", attrs=["bold"]),
                colored(f"{score.percent}%", score_color(score.percent)),
                ", ".join(shared) or "-",
            ]
        )
    return rows


def score_color(percent: int) -> str:
    if percent >= 60:
        return "green"
    if percent >= 30:
        return "yellow"
    return "red"


def render_table_data(
    data: dict[str, Any], key_color: str = "cyan", value_color: str = "yellow"
) -> list[list[str]]:
    """Render a dictionary as two-column rows of colored keys and values."""
    return [
        [colored(key, key_color, attrs=["bold"]), format_value(value, value_color)]
        for key, value in data.items()
    ]


def format_value(value: Any, color: str = "yellow") -> str:
    if isinstance(value, dict):
        value_str = json.dumps(value, indent=2)
        value_str = value_str[1:-1].strip() or "-"
    else:
        value_str = str(value)
    return colored(value_str, color)


def get_colored_headers(headers: list[str], color: str) -> list[str]:
    return [colored(header, color, attrs=["bold"]) for header in headers]


def display_banner(banner_text: str, table: str) -> None:
    """Display the banner centered over the table's first line."""
    banner = colored(banner_text, "magenta", attrs=["bold", "underline"])

    table_width = len(table.split("\n")[0])
    centered_banner = banner.center(table_width + 5)

    typer.echo("\n\n" + centered_banner)

