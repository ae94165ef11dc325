"""Main CLI entry point for toolloop."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from toolloop import __version__
from toolloop.config.loader import find_config_file, load_config
from toolloop.config.models import RuntimeConfig
from toolloop.core.agent import AgentError, AgentStep, DeepResearchAgent
from toolloop.core.loop import ToolCallLoop
from toolloop.llm.client import LLMError, ModelClient
from toolloop.output.jsonl import ErrorEvent, emit, enable_stdout
from toolloop.tools.arithmetic import ARITHMETIC_CAPABILITIES
from toolloop.tools.categories import Category, CategorySelection, configure_selection
from toolloop.tools.registry import CapabilityRegistry
from toolloop.tools.todo import TodoStore

app = typer.Typer(
    name="toolloop",
    help="Tool dispatch and research agent runtime",
    add_completion=False,
)
categories_app = typer.Typer(help="Enable or disable capability categories", add_completion=False)
app.add_typer(categories_app, name="categories")

console = Console(stderr=True)


def version_callback(value: bool):
    if value:
        console.print(f"toolloop v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
):
    """toolloop - let a model call host capabilities."""
    load_dotenv()
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def _load(config_file: Optional[Path], overrides: Optional[Dict[str, Any]] = None) -> RuntimeConfig:
    try:
        return load_config(config_file or find_config_file(), overrides)
    except (OSError, ValueError) as e:
        console.print(f"[red]Error loading configuration: {e}[/red]")
        raise typer.Exit(1)


def build_registry(selection: CategorySelection, todos: Optional[TodoStore] = None) -> CapabilityRegistry:
    registry = CapabilityRegistry(selection=selection)
    registry.register_many(ARITHMETIC_CAPABILITIES)
    if todos is not None:
        registry.register_many(todos.capabilities())
    return registry


def _overrides(model: Optional[str], max_iterations: Optional[int], no_compression: bool) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    if model:
        overrides["primary.model"] = model
    if max_iterations:
        overrides["loop.max_iterations"] = max_iterations
    if no_compression:
        overrides["compression.enabled"] = False
    return overrides


@app.command("run")
def run_command(
    prompt: str = typer.Argument(..., help="The message to send"),
    model: Optional[str] = typer.Option(None, "--model", "-m", help="Primary model"),
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to config file"),
    max_iterations: Optional[int] = typer.Option(None, help="Maximum tool-call round-trips"),
    no_compression: bool = typer.Option(False, "--no-compression", help="Disable result compression"),
    json_mode: bool = typer.Option(False, "--json", help="Print events as JSONL"),
):
    """Answer a message, letting the model call tools."""
    config = _load(config_file, _overrides(model, max_iterations, no_compression))
    enable_stdout(json_mode)
    todos = TodoStore()
    registry = build_registry(configure_selection(config.data_path), todos)

    async def _run():
        async with ModelClient(config) as client:
            loop = ToolCallLoop(client, registry, config, todos=todos)
            return await loop.run([{"role": "user", "content": prompt}])

    try:
        outcome = asyncio.run(_run())
    except LLMError as e:
        emit(ErrorEvent(message=f"{e.code}: {e}"))
        console.print(f"[red]Model error ({e.code}): {e}[/red]")
        raise typer.Exit(1)

    if outcome.records:
        console.print(f"[dim]{len(outcome.records)} tool call(s), finished: {outcome.finish_reason}[/dim]")
    print(outcome.text)


@app.command("research")
def research_command(
    prompt: str = typer.Argument(..., help="The research request"),
    model: Optional[str] = typer.Option(None, "--model", "-m", help="Primary model"),
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to config file"),
    diagrams: bool = typer.Option(False, "--diagrams", help="Generate Mermaid diagrams"),
    json_mode: bool = typer.Option(False, "--json", help="Print events as JSONL"),
):
    """Run the deep-research agent on a request."""
    overrides = _overrides(model, None, False)
    if diagrams:
        overrides["agent.diagrams"] = True
    config = _load(config_file, overrides)
    enable_stdout(json_mode)
    registry = build_registry(configure_selection(config.data_path))

    def on_step(step: AgentStep) -> None:
        console.print(f"[cyan]({step.position + 1}/{len(AgentStep)})[/cyan] {step.label}")

    async def _run():
        async with ModelClient(config) as client:
            agent = DeepResearchAgent(
                client,
                [{"role": "user", "content": prompt}],
                registry=registry,
                config=config,
                on_step=on_step,
            )
            return await agent.run()

    try:
        response = asyncio.run(_run())
    except AgentError as e:
        emit(ErrorEvent(message=str(e)))
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    except LLMError as e:
        emit(ErrorEvent(message=f"{e.code}: {e}"))
        console.print(f"[red]Model error ({e.code}): {e}[/red]")
        raise typer.Exit(1)

    if not response.finished:
        console.print("[yellow]More information is needed:[/yellow]")
    print(response.text)


@app.command("tools")
def tools_command(
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to config file"),
    as_json: bool = typer.Option(False, "--json", help="Print the schemas shown to the model"),
):
    """List enabled capabilities."""
    config = _load(config_file)
    registry = build_registry(configure_selection(config.data_path), TodoStore())
    if as_json:
        print(registry.schemas_json())
        return
    table = Table(title="Enabled capabilities")
    table.add_column("Name", style="cyan")
    table.add_column("Category")
    table.add_column("Required")
    table.add_column("Description")
    for spec in registry.enabled_specs():
        category = spec.category.label if spec.category else "-"
        table.add_row(spec.name, category, ", ".join(spec.required), spec.description)
    Console().print(table)


def _selection(config_file: Optional[Path]) -> CategorySelection:
    return configure_selection(_load(config_file).data_path)


@categories_app.command("list")
def categories_list(
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to config file"),
):
    """Show every category and whether it is enabled."""
    selection = _selection(config_file)
    enabled = set(selection.enabled())
    table = Table(title="Categories")
    table.add_column("Category", style="cyan")
    table.add_column("Enabled")
    for category in Category:
        table.add_row(category.label, "[green]yes[/green]" if category in enabled else "[red]no[/red]")
    Console().print(table)


@categories_app.command("enable")
def categories_enable(
    category: Optional[Category] = typer.Argument(None, help="Category (all when omitted)"),
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to config file"),
):
    """Enable a category, or all of them."""
    selection = _selection(config_file)
    if category is None:
        selection.enable_all()
        console.print("Enabled all categories")
    else:
        selection.enable(category)
        console.print(f"Enabled {category.label}")


@categories_app.command("disable")
def categories_disable(
    category: Optional[Category] = typer.Argument(None, help="Category (all when omitted)"),
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to config file"),
):
    """Disable a category, or all of them."""
    selection = _selection(config_file)
    if category is None:
        selection.disable_all()
        console.print("Disabled all categories")
    else:
        selection.disable(category)
        console.print(f"Disabled {category.label}")


@categories_app.command("toggle")
def categories_toggle(
    category: Category = typer.Argument(..., help="Category to flip"),
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to config file"),
):
    """Flip a category on or off."""
    now_enabled = _selection(config_file).toggle(category)
    console.print(f"{category.label} is now {'enabled' if now_enabled else 'disabled'}")


@app.command("config")
def show_config(
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to config file"),
):
    """Show current configuration."""
    path = config_file or find_config_file()
    if path:
        console.print(f"Loading config from: {path}")
    else:
        console.print("No config file found, using defaults")
    config = _load(path)
    print(config.model_dump_json(indent=2))


if __name__ == "__main__":
    app()
