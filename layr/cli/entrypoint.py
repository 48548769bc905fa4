import typer

from layr.cli import run, show

app = typer.Typer(
    help="Layr turns a structured product intent into a provisioned, deployed web application.",
    add_completion=False,
)


def settings_callback(ctx: typer.Context, settings: str | None = None) -> None:
    """
    Priority order (highest to lowest):
    1. --settings CLI argument (caller's explicit intent)
    2. LAYR_SETTINGS environment variable (handled by LayrSettings.load)
    3. Default layr.yaml (handled by LayrSettings.load)
    """
    ctx.obj = {"settings": settings if settings else ""}


@app.callback()
def main(
    ctx: typer.Context,
    settings: str | None = typer.Option(
        None, "--settings", "-s", help="Specify a path to a custom settings file."
    ),
) -> None:
    settings_callback(ctx, settings)


app.command()(run.run)
app.command()(show.show)

if __name__ == "__main__":
    app()
