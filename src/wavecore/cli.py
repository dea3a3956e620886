"""CLI entry point using Click."""

from __future__ import annotations

import asyncio
import sys
from collections.abc import Sequence
from typing import Any

import click
from rich.console import Console
from rich.markdown import Markdown

from wavecore import __version__
from wavecore.config import WaveConfig, load_config, require_gateway
from wavecore.errors import ConfigurationError
from wavecore.integrations.persistence.memory import is_memory_directive
from wavecore.integrations.utilities.logger import setup_logging
from wavecore.types.blocks import (
    CommandOutputBlock,
    ErrorBlock,
    MemoryBlock,
    Message,
    MemoryType,
    MessageRole,
    TextBlock,
    ToolBlock,
)

EXIT_COMMANDS = frozenset({"/exit", "/quit", "exit", "quit"})


@click.command()
@click.argument("prompt", nargs=-1)
@click.option("--model", "-m", help="Agent model to use")
@click.option("--fast-model", help="Model used for history compression")
@click.option("--max-tokens", type=int, help="Maximum response tokens")
@click.option("--temperature", type=float, help="LLM temperature")
@click.option("--token-limit", type=int, help="Token total that triggers compression")
@click.option("--timeout", type=float, help="Request timeout in seconds")
@click.option("--stream/--no-stream", default=None, help="Stream model output")
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--json-logs", is_flag=True, help="Emit logs as JSON")
@click.option("--version", is_flag=True, help="Show version and exit")
def main(
    prompt: tuple[str, ...],
    model: str | None,
    fast_model: str | None,
    max_tokens: int | None,
    temperature: float | None,
    token_limit: int | None,
    timeout: float | None,
    stream: bool | None,
    debug: bool,
    json_logs: bool,
    version: bool,
) -> None:
    """Wave - conversational coding agent.

    Run with a prompt for a single turn, or without one for a prompt loop.
    """
    if version:
        click.echo(f"wavecore {__version__}")
        return

    cli_args: dict[str, Any] = {}
    if model:
        cli_args["model"] = model
    if fast_model:
        cli_args["fast_model"] = fast_model
    if max_tokens is not None:
        cli_args["max_tokens"] = max_tokens
    if temperature is not None:
        cli_args["temperature"] = temperature
    if token_limit is not None:
        cli_args["token_limit"] = token_limit
    if timeout is not None:
        cli_args["timeout"] = timeout
    if stream is not None:
        cli_args["stream"] = stream
    if debug:
        cli_args["debug"] = True
    if json_logs:
        cli_args["json_logs"] = True

    config = load_config(cli_args=cli_args)
    setup_logging(debug=config.debug, json_output=config.json_logs)

    try:
        require_gateway(config)
    except ConfigurationError as e:
        click.echo(
            f"{e}\n\n"
            "Set the gateway env vars:\n"
            "  export AIGW_TOKEN=...\n"
            "  export AIGW_URL=https://...",
            err=True,
        )
        sys.exit(1)

    prompt_text = " ".join(prompt)
    asyncio.run(_run(config, prompt_text))


async def _run(config: WaveConfig, prompt: str) -> None:
    from wavecore.core.orchestrator import AgentOrchestrator
    from wavecore.providers.openai import StreamingCompletionClient
    from wavecore.tools.registry import ToolRegistry

    api_key, base_url = require_gateway(config)
    console = Console()
    provider = StreamingCompletionClient(api_key, base_url, config.model, timeout=config.timeout)
    agent = AgentOrchestrator(
        provider,
        ToolRegistry(working_dir=config.working_directory),
        working_dir=config.working_directory,
        stream=config.stream,
        fast_model=config.fast_model,
        token_limit=config.token_limit,
        max_tokens=config.max_tokens,
        temperature=config.temperature,
        system_prompt=config.system_prompt,
    )

    try:
        if prompt:
            await _handle_input(agent, console, prompt)
            return
        while True:
            try:
                line = await asyncio.to_thread(click.prompt, ">", prompt_suffix=" ", default="", show_default=False)
            except (EOFError, click.Abort):
                break
            if line.strip() in EXIT_COMMANDS:
                break
            await _handle_input(agent, console, line)
    finally:
        await agent.destroy()
        await provider.close()


async def _handle_input(agent: Any, console: Console, text: str) -> None:
    before = agent.store.messages

    if is_memory_directive(text):
        choice = click.prompt(
            "Save to", type=click.Choice(["project", "user"]), default="project",
        )
        agent.save_memory(text, MemoryType(choice))
    else:
        try:
            with console.status("Thinking...", spinner="dots"):
                await agent.send_message(text)
        except KeyboardInterrupt:
            agent.abort_message()

    for message in new_messages(before, agent.store.messages):
        render_message(console, message)


def new_messages(before: Sequence[Message], after: Sequence[Message]) -> list[Message]:
    """Messages in *after* that were not in *before*.

    Compression inserts its summary in the middle of the list, so the new
    messages are found by identity rather than by position.
    """
    seen = {id(message) for message in before}
    return [message for message in after if id(message) not in seen]


def render_message(console: Console, message: Message) -> None:
    """Print the blocks of one message."""
    if message.role == MessageRole.USER:
        return
    for block in message.blocks:
        if isinstance(block, TextBlock):
            if block.content.strip():
                console.print(Markdown(block.content))
        elif isinstance(block, ToolBlock):
            status = "[green]ok[/green]" if block.success else "[red]failed[/red]"
            params = f" {block.compact_params}" if block.compact_params else ""
            console.print(f"[bold]{block.name}[/bold]{params} {status}")
            summary = block.short_result or block.error
            if summary:
                console.print(f"  {summary}", style="dim", markup=False)
        elif isinstance(block, ErrorBlock):
            console.print(f"Error: {block.content}", style="red", markup=False)
        elif isinstance(block, CommandOutputBlock):
            console.print(f"$ {block.command}", style="bold", markup=False)
            if block.output:
                console.print(block.output, markup=False)
            console.print(f"[dim]exit code {block.exit_code}[/dim]")
        elif isinstance(block, MemoryBlock):
            style = "green" if block.is_success else "red"
            console.print(block.content, style=style, markup=False)


if __name__ == "__main__":
    main()
