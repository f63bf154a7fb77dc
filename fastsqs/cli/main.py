import sys
from pathlib import Path
from typing import Annotated

import anyio
import rich
import typer

from fastsqs.__about__ import __version__
from fastsqs.cli.utils import LogLevels, discover_consumer, get_log_level
from fastsqs.logger import setup_logger

app = typer.Typer(
    name="fastsqs",
    help="A CLI to run FastSQS consumers against Amazon SQS queues.",
    pretty_exceptions_short=True,
    invoke_without_command=True,
    rich_markup_mode="markdown",
)


@app.callback()
def main(
    ctx: typer.Context,
    version: Annotated[
        bool, typer.Option("--version", "-v", help="Show the version and exit.")
    ] = False,
) -> None:
    """
    Display helpful tips when the main command is run without any subcommands.
    """
    if version:
        import platform

        typer.echo(
            f"Running FastSQS {__version__} with {platform.python_implementation()} "
            f"{platform.python_version()} on {platform.system()}",
        )

        raise typer.Exit

    if ctx.invoked_subcommand is None:
        rich.print("\n[bold]Welcome to the FastSQS CLI! ✨[/bold]")
        rich.print("\n[dim]A CLI to run FastSQS consumers against Amazon SQS queues.[/dim]")
        rich.print("\n[bold]Usage[/bold]: [cyan]fastsqs [COMMAND] [ARGS]...[/cyan]")
        rich.print("\n[bold]Common Commands:[/bold]")
        rich.print("  [green]run[/green]    Run a FastSQS consumer.")
        rich.print("  [green]help[/green]   Get detailed help for a command.")
        rich.print(
            "\nRun '[cyan]fastsqs --help[/cyan]' for "
            "a list of all available commands and options."
        )


@app.command()
def run(
    consumer: Annotated[
        str, typer.Argument(help="The consumer to run, as 'module:attribute'.")
    ],
    log_level: Annotated[
        LogLevels,
        typer.Option("--log-level", case_sensitive=False, help="The consumer log level."),
    ] = LogLevels.warning,
    log_serialize: Annotated[
        bool, typer.Option("--log-serialize", help="Write the logs as JSON.")
    ] = False,
    log_to_file: Annotated[
        bool, typer.Option("--log-to-file", help="Also write the logs to a file in FASTSQS_LOG_PATH (./logs by default).")
    ] = False,
) -> None:
    """Run a FastSQS consumer until it receives a termination signal."""
    setup_logger(
        log_level=get_log_level(log_level),
        log_serialize=log_serialize,
        log_to_file=log_to_file,
    )

    # Allows importing consumers from the working directory.
    if str(Path.cwd()) not in sys.path:
        sys.path.insert(0, str(Path.cwd()))

    target = discover_consumer(consumer)
    anyio.run(target.start)


@app.command(name="help")
def show_help(ctx: typer.Context) -> None:
    """
    Show this message and exit.
    """
    if ctx.parent:
        rich.print(ctx.parent.get_help())


def execute_app() -> None:
    app()


if __name__ == "__main__":
    execute_app()
