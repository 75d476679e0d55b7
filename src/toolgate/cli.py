"""CLI interface for toolgate."""

import asyncio
import logging
import tomllib
from pathlib import Path
from typing import Annotated

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from toolgate import __version__
from toolgate.config import Settings, get_tools_file, load_settings
from toolgate.exposure import discover, format_discovery
from toolgate.invoke import ToolInvoker
from toolgate.policy import PolicyGate
from toolgate.registry import create_registry

app = typer.Typer(
    name="toolgate",
    help="Run developer CLI tools under a security policy with structured output.",
    no_args_is_help=True,
)

tools_app = typer.Typer(help="List and discover tools.")
policy_app = typer.Typer(help="Inspect and test the execution policy.")

app.add_typer(tools_app, name="tools")
app.add_typer(policy_app, name="policy")

console = Console()
err_console = Console(stderr=True)


def configure_logging(level: str) -> None:
    """Send library logging through rich on stderr."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, rich_tracebacks=True, show_path=False)],
        force=True,
    )


def _load_settings() -> Settings:
    try:
        return load_settings()
    except ValidationError as e:
        console.print(f"[red]Invalid configuration: {escape(str(e))}[/red]")
        raise typer.Exit(1) from None


def _build_invoker(settings: Settings) -> ToolInvoker:
    try:
        registry = create_registry(settings.config_dir)
    except tomllib.TOMLDecodeError as e:
        tools_file = get_tools_file(settings.config_dir)
        console.print(f"[red]Failed to parse {tools_file}: {escape(str(e))}[/red]")
        raise typer.Exit(1) from None
    except ValidationError as e:
        console.print(f"[red]Invalid tool definition: {escape(str(e))}[/red]")
        raise typer.Exit(1) from None
    return ToolInvoker.from_settings(settings, registry)


def parse_pairs(pairs: list[str] | None, option: str) -> dict[str, str | list[str]]:
    """Parse repeated ``key=value`` options; a repeated key becomes a list.

    Raises:
        typer.Exit: If an item has no "="
    """
    parsed: dict[str, str | list[str]] = {}
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            console.print(f"[red]Invalid {option} value '{escape(pair)}': expected key=value[/red]")
            raise typer.Exit(1)
        key = key.strip()
        if key in parsed:
            existing = parsed[key]
            parsed[key] = [*existing, value] if isinstance(existing, list) else [existing, value]
        else:
            parsed[key] = value
    return parsed


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"toolgate {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option("--version", callback=version_callback, is_eager=True),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", help="Enable debug logging"),
    ] = False,
) -> None:
    """Toolgate: policy-gated developer tools with structured output."""
    settings = _load_settings()
    configure_logging("DEBUG" if verbose else settings.log_level)


@app.command()
def run(
    group: Annotated[str, typer.Argument(help="Tool group (e.g., 'git')")],
    tool: Annotated[str, typer.Argument(help="Tool name (e.g., 'status')")],
    param: Annotated[
        list[str] | None,
        typer.Option("--param", "-p", help="Tool parameter as key=value (repeatable)"),
    ] = None,
    cwd: Annotated[
        Path | None,
        typer.Option("--cwd", "-C", help="Working directory"),
    ] = None,
    full: Annotated[
        bool,
        typer.Option("--full", help="Always return the full structured result"),
    ] = False,
    load: Annotated[
        bool,
        typer.Option("--load", help="Load the tool first if it is deferred"),
    ] = False,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Print the full response as JSON"),
    ] = False,
) -> None:
    """Run a tool and print its result."""
    params = parse_pairs(param, "--param")
    invoker = _build_invoker(_load_settings())

    if load:
        invoker.exposure.load(f"{group}:{tool}")

    response = asyncio.run(invoker.invoke(group, tool, params, cwd=cwd, force_full=full))

    if json_output:
        console.print_json(data=response.to_dict())
    elif response.is_error:
        console.print(response.text, style="red", markup=False, highlight=False)
    else:
        console.print(response.text, markup=False, highlight=False)

    if response.is_error:
        raise typer.Exit(1)


# --- Tools subcommand group ---


@tools_app.command("list")
def tools_list(
    show_all: Annotated[
        bool,
        typer.Option("--all", "-a", help="Include disabled and deferred tools"),
    ] = False,
) -> None:
    """List registered tools and their exposure state."""
    invoker = _build_invoker(_load_settings())
    exposure = invoker.exposure
    registrations = exposure.all() if show_all else exposure.advertised()

    if not registrations:
        console.print("[dim]No tools are enabled.[/dim]")
        return

    table = Table(title="Tools")
    table.add_column("Group", style="cyan")
    table.add_column("Tool")
    table.add_column("State")
    table.add_column("Core")
    table.add_column("Description", style="dim")

    for reg in registrations:
        state = exposure.state(reg.name)
        table.add_row(
            reg.group,
            reg.tool,
            state.value if state is not None else "",
            "yes" if reg.is_core else "",
            reg.description,
        )

    console.print(table)


@tools_app.command("discover")
def tools_discover(
    load: Annotated[
        list[str] | None,
        typer.Option("--load", "-l", help="Tool to load (repeatable)"),
    ] = None,
    group: Annotated[
        str | None,
        typer.Option("--group", "-g", help="Only this group; --load takes bare tool names"),
    ] = None,
) -> None:
    """Show deferred tools and optionally load some of them."""
    invoker = _build_invoker(_load_settings())
    result = discover(invoker.exposure, load=load, group=group)
    console.print(format_discovery(result), markup=False, highlight=False)


# --- Policy subcommand group ---


def _format_set(values: frozenset[str] | None) -> str:
    if values is None:
        return "[dim]unrestricted[/dim]"
    return ", ".join(sorted(values)) or "[dim](empty)[/dim]"


@policy_app.command("show")
def policy_show(
    group: Annotated[
        str | None,
        typer.Option("--group", "-g", help="Show the effective policy for one group"),
    ] = None,
) -> None:
    """Show the policy and exposure settings in force."""
    settings = _load_settings()
    policy = settings.policy
    exposure = settings.exposure

    title = f"Policy ({group})" if group else "Policy (global)"
    table = Table(title=title)
    table.add_column("Setting", style="cyan")
    table.add_column("Value")

    table.add_row("Allowed commands", _format_set(policy.commands_for(group)))
    table.add_row("Allowed roots", _format_set(policy.roots_for(group)))
    table.add_row("Strict path", "on" if policy.strict_path_for(group) else "off")
    table.add_row("Sanitize all paths", "on" if policy.sanitize_all_paths else "off")
    table.add_row("Max output bytes", str(policy.max_output_bytes))
    table.add_row("Default timeout", f"{policy.default_timeout_ms}ms")
    table.add_row("Profile", exposure.profile or "[dim]none[/dim]")
    table.add_row("Lazy loading", "on" if exposure.lazy else "off")
    if exposure.tools is not None:
        table.add_row("Tools", _format_set(exposure.tools))
    if group and (group_tools := exposure.tools_for_group(group)) is not None:
        table.add_row("Group tools", _format_set(group_tools))

    console.print(table)


@policy_app.command(
    "check",
    context_settings={"allow_interspersed_args": False},
)
def policy_check(
    command: Annotated[str, typer.Argument(help="Command to check")],
    args: Annotated[
        list[str] | None,
        typer.Argument(help="Arguments (not checked for flags)"),
    ] = None,
    group: Annotated[
        str | None,
        typer.Option("--group", "-g", help="Tool group for per-group settings"),
    ] = None,
    cwd: Annotated[
        Path | None,
        typer.Option("--cwd", "-C", help="Working directory to check"),
    ] = None,
    value: Annotated[
        list[str] | None,
        typer.Option("--value", "-v", help="Caller value field as key=value (repeatable)"),
    ] = None,
) -> None:
    """Check whether a command would be allowed, without running it.

    Options go before COMMAND; everything after it is treated as arguments.
    """
    values = parse_pairs(value, "--value")
    flat: dict[str, str | None] = {}
    for key, v in values.items():
        if isinstance(v, str):
            flat[key] = v
        else:
            flat.update({f"{key}[{i}]": item for i, item in enumerate(v)})
    settings = _load_settings()

    gate = PolicyGate(settings.policy, group=group)
    decision = gate.authorize(command, args or [], cwd, flat)

    if decision.allowed:
        console.print(f"[green]Allowed:[/green] {escape(command)}", highlight=False)
        return

    message = escape(decision.message or "")
    console.print(f"[red]Denied ({decision.reason}):[/red] {message}", highlight=False)
    raise typer.Exit(1)


if __name__ == "__main__":
    app()
