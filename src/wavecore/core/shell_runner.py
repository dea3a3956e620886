"""Single in-flight shell command execution.

Runs a ``!command`` directive through the platform shell, streaming the
combined stdout/stderr into a command-output block of the conversation.
"""

from __future__ import annotations

import asyncio
import os
import signal

from wavecore.conversation.store import ConversationStore
from wavecore.errors import CommandAlreadyRunningError
from wavecore.integrations.utilities.logger import get_logger

logger = get_logger(__name__)

READ_CHUNK_BYTES = 4096
SIGNAL_EXIT_CODE = 130

# Environment variables to strip from child processes
SENSITIVE_ENV_VARS = frozenset({
    "AIGW_TOKEN",
    "AWS_SECRET_ACCESS_KEY",
    "AWS_SESSION_TOKEN",
    "GITHUB_TOKEN",
    "GH_TOKEN",
    "NPM_TOKEN",
    "PYPI_TOKEN",
})


def _sanitize_env() -> dict[str, str]:
    """Create a sanitized environment for child processes."""
    env = dict(os.environ)
    env["TERM"] = "dumb"
    for var in SENSITIVE_ENV_VARS:
        env.pop(var, None)
    return env


def _exit_code(returncode: int | None) -> int:
    """Signal-terminated processes report 130."""
    if returncode is None:
        return 0
    if returncode < 0:
        return SIGNAL_EXIT_CODE
    return returncode


def _kill_process_group(proc: asyncio.subprocess.Process) -> None:
    """SIGKILL the shell and everything it spawned."""
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except (ProcessLookupError, PermissionError):
        try:
            proc.kill()
        except ProcessLookupError:
            pass


class ShellCommandRunner:
    """Runs at most one shell command at a time."""

    def __init__(self, store: ConversationStore, working_dir: str | None = None) -> None:
        self._store = store
        self._working_dir = working_dir or os.getcwd()
        self._process: asyncio.subprocess.Process | None = None
        self._command: str | None = None
        self._running = False
        # Bumped by every execute and abort; a run only writes to the store
        # while its generation is current.
        self._generation = 0

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def working_dir(self) -> str:
        return self._working_dir

    def update_workdir(self, working_dir: str) -> None:
        self._working_dir = working_dir

    async def execute(self, command: str) -> int:
        """Run *command* and return its exit code.

        Spawn failures are written into the output block and reported as
        exit code 1 rather than raised.

        Raises:
            CommandAlreadyRunningError: Another command is still in flight.
        """
        if self._running:
            raise CommandAlreadyRunningError()

        self._running = True
        self._command = command
        self._generation += 1
        generation = self._generation
        self._store.add_command_output(command)
        output = ""

        def current() -> bool:
            return self._generation == generation

        try:
            proc = await asyncio.create_subprocess_shell(
                command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                cwd=self._working_dir,
                env=_sanitize_env(),
                start_new_session=True,
            )
        except OSError as e:
            logger.warning("shell_spawn_failed", command=command, error=str(e))
            if not current():
                return SIGNAL_EXIT_CODE
            output += f"\nError: {e}"
            self._store.update_command_output(command, output)
            self._store.complete_command(command, 1)
            self._release()
            return 1

        if not current():
            # Aborted while spawning
            _kill_process_group(proc)
            await proc.wait()
            return SIGNAL_EXIT_CODE

        self._process = proc
        try:
            assert proc.stdout is not None
            while True:
                chunk = await proc.stdout.read(READ_CHUNK_BYTES)
                if not chunk:
                    break
                output += chunk.decode("utf-8", errors="replace")
                if current():
                    self._store.update_command_output(command, output)
            returncode = await proc.wait()
        except asyncio.CancelledError:
            _kill_process_group(proc)
            if current():
                self._store.complete_command(command, SIGNAL_EXIT_CODE)
            raise
        finally:
            if current():
                self._release()

        if not current():
            return SIGNAL_EXIT_CODE

        exit_code = _exit_code(returncode)
        self._store.complete_command(command, exit_code)
        logger.debug("shell_command_finished", command=command, exit_code=exit_code)
        return exit_code

    def abort(self) -> None:
        """Kill the running command, if any, and finish its block with 130 now.

        The killed run stops writing to the store, so the same command can be
        started again straight away.
        """
        proc = self._process
        command = self._command if self._running else None
        self._generation += 1
        self._release()
        if command is not None:
            self._store.complete_command(command, SIGNAL_EXIT_CODE)
        if proc is None or proc.returncode is not None:
            return
        _kill_process_group(proc)

    def _release(self) -> None:
        self._process = None
        self._command = None
        self._running = False
