"""Agent orchestrator: the generate -> call tools -> regenerate loop.

A turn chain starts from user input, streams a model response into the
conversation, runs the returned tool calls one at a time, and goes round
again while tools were called. The chain's transient state (cancellation
sources, depth, state machine) lives in a ``TurnContext`` so that nothing
mutable is shared between engine instances.
"""

from __future__ import annotations

import inspect
import json
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from wavecore.agent.prompts import build_agent_messages, build_system_prompt
from wavecore.config import resolve_token_limit
from wavecore.conversation.projection import convert_messages_for_api
from wavecore.conversation.store import ConversationStore
from wavecore.core.cancellation import CancellationToken, CancellationTokenSource
from wavecore.core.compression import compress_conversation
from wavecore.core.shell_runner import ShellCommandRunner
from wavecore.core.turn_state import TurnStateMachine
from wavecore.errors import CommandAlreadyRunningError, ToolArgumentError, is_abort_error
from wavecore.integrations.persistence.memory import (
    append_memory,
    is_memory_directive,
    memory_path,
    memory_text,
    read_memory,
)
from wavecore.integrations.streaming.handler import collect_stream
from wavecore.integrations.utilities.logger import bind_session, get_logger
from wavecore.providers.base import CompletionProvider
from wavecore.tools.bridge import ToolExecutionBridge, ToolExecutionResult
from wavecore.tricks.partial_json import (
    extract_complete_params,
    format_compact_params,
    parse_tool_arguments,
)
from wavecore.types.blocks import MemoryType, Session, ToolBlock, ToolImage
from wavecore.types.messages import ChatRequest, ChatResponse, TokenUsage, ToolCall

logger = get_logger(__name__)

SessionPersister = Callable[[Session], Any]
MemoryLoader = Callable[[], str]

INTERRUPTED_TOOL_ERROR = "Tool execution was interrupted"


def is_shell_directive(text: str) -> bool:
    """A single-line input starting with ``!``."""
    stripped = text.strip()
    return stripped.startswith("!") and "\n" not in stripped


# =============================================================================
# Turn context
# =============================================================================


@dataclass
class TurnContext:
    """Transient state of one turn chain.

    Holds one cancellation source for the model call and one for tool
    execution; both are replaced at the start of every iteration and
    dropped between iterations. ``aborted`` survives that gap so an abort
    arriving while no sources exist still stops the chain.
    """

    depth: int = 0
    aborted: bool = False
    machine: TurnStateMachine = field(default_factory=TurnStateMachine)
    model_source: CancellationTokenSource | None = None
    tool_source: CancellationTokenSource | None = None

    def open_sources(self) -> None:
        self.model_source = CancellationTokenSource()
        self.tool_source = CancellationTokenSource()
        if self.aborted:
            self.model_source.cancel()
            self.tool_source.cancel()

    def clear_sources(self) -> None:
        self.model_source = None
        self.tool_source = None

    @property
    def model_token(self) -> CancellationToken:
        if self.model_source is None:
            self.open_sources()
        assert self.model_source is not None
        return self.model_source.token

    @property
    def tool_token(self) -> CancellationToken:
        if self.tool_source is None:
            self.open_sources()
        assert self.tool_source is not None
        return self.tool_source.token

    @property
    def cancelled(self) -> bool:
        """Whether either token has fired (or the chain was aborted)."""
        if self.aborted:
            return True
        return any(
            source is not None and source.is_cancelled
            for source in (self.model_source, self.tool_source)
        )

    def abort(self, reason: str = "aborted") -> None:
        """Fire both tokens. Never raises."""
        self.aborted = True
        for label, source in (("model", self.model_source), ("tool", self.tool_source)):
            if source is None:
                continue
            try:
                source.cancel(reason)
            except Exception:
                logger.exception("cancel_signal_failed", target=label)


# =============================================================================
# Orchestrator
# =============================================================================


class AgentOrchestrator:
    """Drives conversation turns against a model and a tool bridge.

    The orchestrator keeps no message state; everything visible lives in
    the ``ConversationStore``. Only one turn chain runs at a time.
    """

    def __init__(
        self,
        provider: CompletionProvider,
        tools: ToolExecutionBridge,
        *,
        store: ConversationStore | None = None,
        working_dir: str | None = None,
        stream: bool = True,
        fast_model: str | None = None,
        token_limit: int | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
        system_prompt: str | None = None,
        memory_loader: MemoryLoader | None = None,
        user_dir: Path | None = None,
        session: Session | None = None,
        session_persister: SessionPersister | None = None,
        shell_runner: ShellCommandRunner | None = None,
    ) -> None:
        self._provider = provider
        self._tools = tools
        self._store = store or ConversationStore()
        self._working_dir = working_dir or str(Path.cwd())
        self._stream = stream
        self._fast_model = fast_model
        self._token_limit = token_limit
        self._max_tokens = max_tokens
        self._temperature = temperature
        self._base_prompt = system_prompt
        self._user_dir = user_dir
        self._memory_loader = memory_loader or (lambda: read_memory(self._working_dir, user_dir=self._user_dir))
        self._session_persister = session_persister
        self._shell = shell_runner or ShellCommandRunner(self._store, self._working_dir)
        self._active: TurnContext | None = None
        if session is not None:
            self._store.initialize_from_session(session)

    # =========================================================================
    # State
    # =========================================================================

    @property
    def store(self) -> ConversationStore:
        return self._store

    @property
    def shell(self) -> ShellCommandRunner:
        return self._shell

    @property
    def is_loading(self) -> bool:
        return self._store.is_loading

    @property
    def active_turn(self) -> TurnContext | None:
        return self._active

    @property
    def working_dir(self) -> str:
        return self._working_dir

    def update_workdir(self, working_dir: str) -> None:
        self._working_dir = working_dir
        self._shell.update_workdir(working_dir)

    # =========================================================================
    # Input
    # =========================================================================

    async def send_message(self, content: str, images: list[str] | None = None) -> None:
        """Handle one piece of user input.

        ``#note`` is a memory directive and records nothing until the
        caller picks a memory type and calls ``save_memory``. ``!cmd`` runs
        a shell command without involving the model. Anything else becomes
        a user message and starts a turn.
        """
        if not content.strip() and not images:
            return

        if is_memory_directive(content):
            logger.debug("memory_directive_received")
            return

        if is_shell_directive(content):
            self._store.add_to_input_history(content)
            command = content.strip()[1:].strip()
            if not command:
                return
            try:
                await self._shell.execute(command)
            except CommandAlreadyRunningError as e:
                logger.warning("shell_command_rejected", command=command, error=str(e))
            return

        if content.strip():
            self._store.add_to_input_history(content)
        self._store.add_user_message(content, images)
        await self.run_agent_turn()

    def save_memory(self, directive: str, memory_type: MemoryType) -> bool:
        """Store a ``#note`` in the chosen memory file and record the outcome."""
        label = "Project Memory" if memory_type == MemoryType.PROJECT else "User Memory"
        target = memory_path(memory_type, self._working_dir, self._user_dir)
        try:
            path = append_memory(directive, memory_type, self._working_dir, user_dir=self._user_dir)
        except (OSError, ValueError) as e:
            logger.warning("memory_save_failed", memory_type=str(memory_type), error=str(e))
            self._store.add_memory_block(f"{label} add failed: {e}", False, memory_type, str(target))
            return False
        self._store.add_memory_block(f"{label}: {memory_text(directive)}", True, memory_type, str(path))
        return True

    # =========================================================================
    # Turn chain
    # =========================================================================

    async def run_agent_turn(self) -> None:
        """Run a turn chain until the model stops calling tools.

        Rejected (logged, no-op) while another chain is loading.
        """
        if self._store.is_loading:
            logger.warning("turn_rejected_busy", session_id=self._store.session_id)
            return

        bind_session(self._store.session_id)
        ctx = TurnContext()
        self._active = ctx
        self._store.set_loading(True)
        try:
            while await self._run_iteration(ctx):
                ctx.depth += 1
        finally:
            ctx.clear_sources()
            ctx.machine.finish()
            if self._active is ctx:
                self._resolve_running_tools()
                self._active = None
                self._store.set_loading(False)

    async def _run_iteration(self, ctx: TurnContext) -> bool:
        """One model call plus its tool calls. Returns whether to go again."""
        if ctx.aborted:
            return False
        ctx.open_sources()
        ctx.machine.generate()
        logger.debug("turn_iteration", depth=ctx.depth, session_id=self._store.session_id)

        self._store.add_assistant_message()
        self._store.add_answer_block()

        try:
            response = await self._generate(ctx)
        except Exception as e:
            if ctx.cancelled or is_abort_error(e):
                logger.info("turn_aborted", depth=ctx.depth)
                return False
            logger.error("turn_failed", depth=ctx.depth, error=str(e), error_type=type(e).__name__)
            self._store.add_error_block(str(e) or type(e).__name__)
            return False

        if response.usage is not None:
            await self._handle_usage(response.usage, ctx)

        if not response.tool_calls:
            return False

        ctx.machine.dispatch()
        processed = await self._dispatch_tool_calls(response.tool_calls, ctx)

        ctx.clear_sources()
        if ctx.aborted:
            return False
        return processed > 0

    async def _generate(self, ctx: TurnContext) -> ChatResponse:
        system_prompt = build_system_prompt(
            base_prompt=self._base_prompt,
            working_dir=self._working_dir,
            memory=self._memory_loader(),
        )
        request = ChatRequest(
            messages=build_agent_messages(system_prompt, convert_messages_for_api(self._store.messages)),
            tools=self._tools.get_definitions(),
            temperature=self._temperature,
            max_tokens=self._max_tokens,
        )
        token = ctx.model_token

        if not self._stream:
            response = await self._provider.complete(request, token)
            if response.content:
                self._store.update_answer_block(response.content)
            return response

        return await collect_stream(
            self._provider.stream(request, token),
            on_text=lambda _delta, full: self._store.update_answer_block(full),
            on_tool_call=self._preview_tool_call,
            model=self._provider.model,
        )

    def _preview_tool_call(self, call: ToolCall) -> None:
        """Show a streaming tool call with whatever arguments are complete so far."""
        if not call.id:
            return
        self._store.add_tool_block(call.id, call.name, call.arguments)
        preview = format_compact_params(extract_complete_params(call.arguments))
        self._store.update_tool_block(call.id, compact_params=preview)

    async def _handle_usage(self, usage: TokenUsage, ctx: TurnContext) -> None:
        """Replace the token total and compress history when over the limit."""
        total = usage.comprehensive_total
        self._store.set_total_tokens(total)
        limit = resolve_token_limit(self._token_limit)
        if total <= limit:
            return

        logger.info("token_limit_exceeded", total_tokens=total, limit=limit)
        try:
            await compress_conversation(
                self._store, self._provider, model=self._fast_model, token=ctx.model_token,
            )
        except Exception as e:
            # compression never fails the turn
            if is_abort_error(e):
                logger.info("compression_aborted")
            else:
                logger.warning("compression_failed", error=str(e))

    # =========================================================================
    # Tool dispatch
    # =========================================================================

    async def _dispatch_tool_calls(self, calls: list[ToolCall], ctx: TurnContext) -> int:
        """Run *calls* in order, one at a time. Returns how many were dispatched."""
        processed = 0
        for call in calls:
            if ctx.cancelled:
                logger.info("tool_dispatch_stopped", remaining=len(calls) - processed)
                break

            call_id = call.id or f"call_{uuid.uuid4().hex[:12]}"
            self._store.add_tool_block(call_id, call.name, call.arguments)

            try:
                arguments = parse_tool_arguments(call.name, call.arguments)
            except ToolArgumentError as e:
                logger.warning("tool_arguments_invalid", tool=call.name)
                self._store.update_tool_block(
                    call_id, success=False, error=str(e), result=str(e), is_running=False,
                )
                self._store.add_error_block(str(e))
                continue

            self._store.update_tool_block(
                call_id,
                is_running=True,
                parameters=json.dumps(arguments, indent=2),
                compact_params=format_compact_params(arguments),
            )
            processed += 1
            await self._execute_tool(call_id, call.name, arguments, ctx)
        return processed

    async def _execute_tool(
        self,
        call_id: str,
        name: str,
        arguments: dict[str, Any],
        ctx: TurnContext,
    ) -> None:
        logger.debug("tool_started", tool=name, call_id=call_id)
        try:
            raw = await self._tools.execute(name, arguments, cancellation_token=ctx.tool_token)
            result = ToolExecutionResult.coerce(raw)
        except Exception as e:
            message = f"Tool execution failed: {e}"
            logger.warning("tool_failed", tool=name, error=str(e))
            self._store.update_tool_block(
                call_id, is_running=False, success=False, error=message, result=message,
            )
            return

        images = None
        if result.images:
            images = [ToolImage(data=img.data, media_type=img.media_type) for img in result.images]
        self._store.update_tool_block(
            call_id,
            is_running=False,
            success=result.success,
            result=result.display_text,
            error=result.error,
            short_result=result.short_result,
            images=images,
        )
        if result.success and result.has_diff:
            self._store.add_diff_block(
                result.file_path or "",
                result.diff_result,
                result.original_content or "",
                result.new_content or "",
            )
        logger.debug("tool_finished", tool=name, call_id=call_id, success=result.success)

    def _resolve_running_tools(self) -> None:
        """Finish any tool block a cancelled task left running."""
        messages = self._store.messages
        if not messages:
            return
        for block in messages[-1].blocks:
            if isinstance(block, ToolBlock) and block.is_running:
                self._store.update_tool_block(
                    block.id, is_running=False, success=False, error=INTERRUPTED_TOOL_ERROR,
                )

    # =========================================================================
    # Cancellation
    # =========================================================================

    def abort_ai_message(self) -> None:
        """Fire both cancellation tokens of the active chain and clear loading."""
        ctx = self._active
        if ctx is not None:
            ctx.abort()
        self._store.set_loading(False)

    def abort_message(self) -> None:
        """Abort the model, tools and any running shell command."""
        self.abort_ai_message()
        try:
            self._shell.abort()
        except Exception:
            logger.exception("shell_abort_failed")

    # =========================================================================
    # Session
    # =========================================================================

    def reset_session(self) -> None:
        self._store.reset_session()

    def clear_messages(self) -> None:
        self._store.clear_messages()

    def initialize_from_session(self, session: Session) -> None:
        self._store.initialize_from_session(session)

    async def destroy(self) -> None:
        """Stop everything and hand the session to the persister."""
        self.abort_message()
        if self._session_persister is None:
            return
        outcome = self._session_persister(self._store.to_session(self._working_dir))
        if inspect.isawaitable(outcome):
            await outcome
