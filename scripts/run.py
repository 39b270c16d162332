"""Command-line front end for the elf agent."""

import asyncio
import json
import logging
import sys
import time
from pathlib import Path

import typer
from prompt_toolkit import PromptSession
from prompt_toolkit.completion import WordCompleter
from prompt_toolkit.formatted_text import HTML
from rich.console import Console
from rich.live import Live
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from config.settings import settings
from elf_agent import __version__
from elf_agent.agent import AgentProgress, AgentResult, AgentStatus, get_executor

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="elf-agent",
    help="Santa's Elf: a tool-using assistant that reviews its own answers",
)
console = Console()

_STATUS_COLORS = {
    AgentStatus.STARTING: "cyan",
    AgentStatus.THINKING: "magenta",
    AgentStatus.TOOL: "yellow",
    AgentStatus.FINALIZING: "blue",
    AgentStatus.ERROR: "red",
    AgentStatus.DONE: "green",
}


@app.callback()
def _configure_logging(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logs."),
) -> None:
    """Configure logging for CLI runs."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, settings.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def _render_progress(progress: AgentProgress) -> Text:
    color = _STATUS_COLORS.get(progress.status, "white")
    text = Text()
    text.append(f"[{progress.step}/{progress.max_steps}] ", style="dim")
    text.append(progress.status.value, style=f"bold {color}")
    if progress.last_tool_used:
        text.append(f"  last tool: {progress.last_tool_used}", style="dim")
    message = progress.message.strip().replace("\n", " ")
    if message:
        text.append(f"\n{message[-160:]}", style="italic")
    return text


async def _run_once(
    prompt: str,
    user_id: str,
    scenario: str,
    context_info: str,
    max_steps: int,
    timeout_ms: int,
    show_progress: bool,
) -> AgentResult:
    executor = get_executor()
    if not show_progress:
        return await executor.run(
            user_id,
            scenario,
            prompt,
            context_info,
            max_steps=max_steps,
            timeout_ms=timeout_ms,
        )

    with Live(Text("Starting...", style="dim"), console=console, transient=True) as live:

        def on_progress(progress: AgentProgress) -> None:
            live.update(_render_progress(progress))

        return await executor.run(
            user_id,
            scenario,
            prompt,
            context_info,
            max_steps=max_steps,
            timeout_ms=timeout_ms,
            on_progress=on_progress,
        )


def _print_result(result: AgentResult, show_trace: bool, elapsed: float) -> None:
    console.print(Panel(Markdown(result.final_answer), title="Elf", border_style="green"))

    if show_trace and result.steps:
        trace = Table(title="Reasoning trace", show_header=False, box=None)
        trace.add_column("line", overflow="fold")
        for line in result.steps:
            trace.add_row(line)
        console.print(trace)

    details = [f"{elapsed:.1f}s"]
    if result.last_tool_used:
        details.append(f"last tool: {result.last_tool_used}")
    if result.artifacts_updated:
        details.append("artifacts updated")
    console.print(f"[dim]{' | '.join(details)}[/dim]")

    if result.chained_instruction:
        console.print(f"[yellow]Follow-up:[/yellow] {result.chained_instruction}")


@app.command()
def ask(
    prompt: str = typer.Argument(..., help="Request for the agent"),
    user: str = typer.Option("cli-user", "--user", "-u", help="User id passed to tools"),
    scenario: str = typer.Option("christmas", "--scenario", "-s", help="Scenario slug"),
    context: str = typer.Option("", "--context", "-c", help="Extra context (preferences, history)"),
    max_steps: int = typer.Option(settings.agent_max_steps, "--max-steps", help="Step ceiling"),
    timeout_ms: int = typer.Option(
        settings.agent_loop_timeout_ms, "--timeout-ms", help="Whole-run time budget"
    ),
    as_json: bool = typer.Option(False, "--json", help="Print the raw result as JSON"),
    trace: bool = typer.Option(True, "--trace/--no-trace", help="Show the reasoning trace"),
) -> None:
    """Run one request through the agent loop."""
    start = time.time()
    result = asyncio.run(
        _run_once(prompt, user, scenario, context, max_steps, timeout_ms, not as_json)
    )
    if as_json:
        console.print_json(json.dumps(result.to_dict(), default=str))
        return
    _print_result(result, trace, time.time() - start)


_COMMANDS = {
    "/help": "Show commands",
    "/tools": "List the agent's tools",
    "/clear": "Forget the conversation history",
    "/quit": "Exit the chat",
    "/exit": "Exit the chat",
}


def _create_prompt_session() -> PromptSession:
    """Create a prompt_toolkit session with slash-command completion."""
    completer = WordCompleter(
        list(_COMMANDS),
        meta_dict=_COMMANDS,
        sentence=True,
    )
    return PromptSession(completer=completer, complete_while_typing=True)


def _print_tools() -> None:
    table = Table(title="Tools")
    table.add_column("Name", style="cyan")
    table.add_column("Description")
    for tool in get_executor().tool_registry.list_tools():
        table.add_row(tool.name, tool.description)
    console.print(table)


def _next_continuation(result: AgentResult, continuations: int, limit: int) -> str | None:
    """Return the chained instruction to run next, or None once the limit is spent."""
    if not result.chained_instruction:
        return None
    if continuations >= limit:
        console.print(
            f"[yellow]Stopped after {continuations} automatic continuation(s). "
            "Send the follow-up to keep going.[/yellow]"
        )
        return None
    return result.chained_instruction


async def _chat_loop(user_id: str, scenario: str) -> None:
    session = _create_prompt_session()
    history: list[str] = []
    pending: str | None = None
    continuations = 0

    while True:
        if pending:
            prompt = pending
            continuations += 1
            logger.info(f"Continuing chained task ({continuations}): {prompt}")
            console.print(f"[dim]Continuing: {prompt}[/dim]")
        else:
            continuations = 0
            try:
                prompt = (await session.prompt_async(HTML("<b><ansigreen>elf</ansigreen></b> > "))).strip()
            except (KeyboardInterrupt, EOFError):
                break
            if not prompt:
                continue

            if prompt.startswith("/"):
                command = prompt.split()[0].lower()
                if command in ("/quit", "/exit"):
                    break
                if command == "/clear":
                    history.clear()
                    console.print("[dim]History cleared.[/dim]")
                elif command == "/tools":
                    _print_tools()
                else:
                    for name, description in _COMMANDS.items():
                        console.print(f"[cyan]{name}[/cyan]  {description}")
                continue

        context_info = "HISTORY:\n" + "\n".join(history[-10:]) if history else ""
        start = time.time()
        result = await _run_once(
            prompt,
            user_id,
            scenario,
            context_info,
            settings.agent_max_steps,
            settings.agent_loop_timeout_ms,
            True,
        )
        _print_result(result, False, time.time() - start)

        history.append(f"User: {prompt}")
        history.append(f"Elf: {result.final_answer}")
        pending = _next_continuation(result, continuations, settings.chat_max_continuations)

    console.print("\n[cyan]Goodbye![/cyan]")


@app.command()
def chat(
    user: str = typer.Option("cli-user", "--user", "-u", help="User id passed to tools"),
    scenario: str = typer.Option("christmas", "--scenario", "-s", help="Scenario slug"),
) -> None:
    """Interactive session; chained tasks continue automatically."""
    console.print(f"[bold green]Santa's Elf[/bold green] v{__version__} (/help for commands, /quit to exit)")
    asyncio.run(_chat_loop(user, scenario))


@app.command()
def tools() -> None:
    """List the tools available to the agent."""
    _print_tools()


@app.command()
def check() -> None:
    """Check system status and providers."""
    from elf_agent.llm.local import LocalLLM
    from elf_agent.llm.selector import ProviderSelector

    console.print("[bold]System Status Check[/bold]\n")

    ollama = LocalLLM().status()
    if not ollama.reachable:
        status = "[red]NOT AVAILABLE[/red]"
    elif not ollama.model_loaded:
        status = f"[yellow]model {ollama.model} not installed[/yellow]"
    else:
        status = "[green]OK[/green]"
    console.print(f"Ollama ({settings.ollama_base_url}): {status}")
    if ollama.models:
        console.print(f"Installed models: {', '.join(ollama.models)}")

    providers = ProviderSelector().list_available_providers()
    console.print(f"Available providers: {', '.join(providers) or 'none'}")

    console.print(f"\nModel: {settings.ollama_model}")
    console.print(f"Fallback enabled: {settings.fallback_enabled}")
    console.print(
        f"Budgets: {settings.agent_max_steps} steps, "
        f"{settings.agent_loop_timeout_ms} ms per run, "
        f"{settings.agent_stream_timeout_ms} ms per chunk"
    )


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
