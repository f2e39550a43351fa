"""Agent subprocess runner.

Spawns the agent CLI, pipes the prompt through stdin (never argv, which is
subject to command-line length limits) and collects stdout until the process
exits or the wall-clock deadline passes.

On timeout or cancellation the child gets SIGTERM, then SIGKILL after a grace
window. A timed-out run never returns its partial output.
"""

import asyncio
import logging
from pathlib import Path

from ..config import AgentSettings
from ..exceptions import ProcessError, ProcessErrorKind
from ..observability.progress import ElapsedProgress

logger = logging.getLogger(__name__)

INSTALL_HINT = "Install Gemini CLI via: npm install -g @google/gemini-cli"
VERSION_CHECK_TIMEOUT = 15.0
READ_CHUNK_SIZE = 64 * 1024

EXIT_CODE_HINTS: dict[int, str] = {
    1: "General error - Check Gemini CLI configuration and authentication",
    2: "Misuse of shell command - Verify CLI arguments",
    126: "Command invoked cannot execute - Check Gemini CLI installation",
    127: f"Command not found - {INSTALL_HINT}",
    130: "Process terminated by SIGINT (Ctrl+C)",
    143: "Process terminated by SIGTERM",
    255: "Exit status out of range - Possible environment issue",
}


def exit_code_hint(code: int | None) -> str:
    """Human-readable hint for an agent exit code."""
    if code is None:
        return "Process terminated by signal"
    if code < 0:
        return f"Process terminated by signal {-code}"
    return EXIT_CODE_HINTS.get(code, f"Unknown error code {code}")


class AgentRunner:
    """Runs one agent subprocess per call.

    Usage:
        runner = AgentRunner(settings.agent, cwd=settings.config_dir)
        output = await runner.run(prompt, model="gemini-2.5-pro")
    """

    def __init__(
        self,
        settings: AgentSettings,
        cwd: Path | None = None,
    ):
        self.settings = settings
        self.cwd = cwd
        self._live: set[asyncio.subprocess.Process] = set()

    def build_command(self, model: str | None = None) -> list[str]:
        """Build argv: command, fixed flags, then ``--model`` only when a model is given."""
        command = [self.settings.command, *self.settings.flags]
        if model:
            command.extend(["--model", model])
        return command

    async def run(self, prompt: str, model: str | None = None) -> str:
        """Run the agent with ``prompt`` on stdin and return its stdout.

        Raises:
            ProcessError: NOT_FOUND / SPAWN_FAILURE when the process cannot
                start, NON_ZERO_EXIT on a failing exit status, TIMEOUT when the
                deadline passes.
        """
        command = self.build_command(model)
        logger.debug(f"Spawning agent process with model: {model or 'auto-select'}")
        logger.debug(f"Working directory: {self.cwd}")

        process = await self._spawn(command)
        self._live.add(process)
        stdout_chunks: list[bytes] = []
        stderr_chunks: list[bytes] = []

        try:
            async with ElapsedProgress("Research", self.settings.progress_interval):
                try:
                    await asyncio.wait_for(
                        self._communicate(process, prompt, stdout_chunks, stderr_chunks),
                        timeout=self.settings.timeout,
                    )
                except asyncio.TimeoutError:
                    logger.error("Research timeout reached")
                    await self._shutdown(process)
                    raise ProcessError(
                        ProcessErrorKind.TIMEOUT,
                        f"Research task exceeded timeout of {self.settings.timeout:g}s",
                    ) from None
                except asyncio.CancelledError:
                    await self._shutdown(process)
                    raise
        finally:
            self._live.discard(process)

        code = process.returncode
        logger.debug(f"Agent process exited with code: {code}")
        if code != 0:
            stderr = b"".join(stderr_chunks).decode("utf-8", errors="replace").strip()
            raise ProcessError(
                ProcessErrorKind.NON_ZERO_EXIT,
                f"Gemini CLI exited with code {code}. {exit_code_hint(code)}",
                detail=stderr or None,
                exit_code=code,
            )

        stdout = b"".join(stdout_chunks).decode("utf-8", errors="replace")
        logger.debug(f"Agent produced {len(stdout)} chars of output")
        return stdout

    async def is_available(self) -> bool:
        """Check that the agent binary starts and answers ``--version``."""
        try:
            process = await asyncio.create_subprocess_exec(
                self.settings.command,
                "--version",
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except OSError as e:
            logger.debug(f"Agent availability check failed: {e}")
            return False

        try:
            code = await asyncio.wait_for(process.wait(), timeout=VERSION_CHECK_TIMEOUT)
        except asyncio.TimeoutError:
            await self._shutdown(process)
            return False
        return code == 0

    async def terminate_all(self) -> None:
        """Shut down every agent process still running on this runner."""
        processes = list(self._live)
        if processes:
            logger.info(f"Terminating {len(processes)} running agent process(es)")
        await asyncio.gather(*(self._shutdown(p) for p in processes))

    async def _spawn(self, command: list[str]) -> asyncio.subprocess.Process:
        try:
            return await asyncio.create_subprocess_exec(
                *command,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=self.cwd,
            )
        except FileNotFoundError as e:
            raise ProcessError(
                ProcessErrorKind.NOT_FOUND,
                f"Agent command '{self.settings.command}' not found",
                detail=INSTALL_HINT,
            ) from e
        except OSError as e:
            raise ProcessError(
                ProcessErrorKind.SPAWN_FAILURE,
                f"Failed to spawn agent process: {e}",
            ) from e

    async def _communicate(
        self,
        process: asyncio.subprocess.Process,
        prompt: str,
        stdout_chunks: list[bytes],
        stderr_chunks: list[bytes],
    ) -> None:
        await asyncio.gather(
            self._write_prompt(process, prompt),
            self._read_stream(process.stdout, stdout_chunks),
            self._read_stream(process.stderr, stderr_chunks, is_stderr=True),
        )
        await process.wait()

    async def _write_prompt(self, process: asyncio.subprocess.Process, prompt: str) -> None:
        if process.stdin is None:
            return
        logger.debug("Writing prompt to stdin")
        try:
            process.stdin.write(prompt.encode("utf-8"))
            await process.stdin.drain()
        except (BrokenPipeError, ConnectionResetError):
            # Child exited before reading; its exit status tells the story.
            logger.debug("Agent closed stdin before the prompt was fully written")
        finally:
            process.stdin.close()
            try:
                await process.stdin.wait_closed()
            except (BrokenPipeError, ConnectionResetError):
                pass

    async def _read_stream(
        self,
        stream: asyncio.StreamReader | None,
        chunks: list[bytes],
        is_stderr: bool = False,
    ) -> None:
        if stream is None:
            return
        while True:
            data = await stream.read(READ_CHUNK_SIZE)
            if not data:
                break
            chunks.append(data)
            if is_stderr and self.settings.verbose:
                logger.debug(f"[GEMINI STDERR] {data.decode('utf-8', errors='replace').rstrip()}")

    async def _shutdown(self, process: asyncio.subprocess.Process) -> None:
        """SIGTERM, wait the grace window, then SIGKILL."""
        if process.returncode is not None:
            return
        logger.debug("Terminating agent process")
        try:
            process.terminate()
        except ProcessLookupError:
            return
        try:
            await asyncio.wait_for(process.wait(), timeout=self.settings.kill_grace)
        except asyncio.TimeoutError:
            logger.debug("Force killing agent process")
            try:
                process.kill()
            except ProcessLookupError:
                return
            await process.wait()
