"""
Subprocess runner for store CLI clients (legendary, gogdl, nile, steam).

Every store operation goes through this module. It never raises for a
missing binary, a spawn error, a timeout or a non-zero exit: the failure is
folded into the returned CliResult (exit code -1 means "could not invoke").
Task cancellation is the exception: the child is terminated and
CancelledError propagates to the caller.
"""
import asyncio
import logging
import os
import shutil
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, List, Optional, Union

logger = logging.getLogger(__name__)

# Exit code reported when the process could not be started or was timed out
NOT_INVOKED = -1

# Max stderr characters included in failure logs
STDERR_LOG_LIMIT = 500

LineCallback = Callable[[str], Union[None, Awaitable[None]]]


@dataclass
class CliResult:
    """Outcome of a CLI invocation"""
    stdout: str
    stderr: str
    exit_code: int

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


def find_binary(client: str, bin_dir: Optional[str] = None,
                explicit: Optional[str] = None) -> Optional[str]:
    """Find a client executable - explicit path, bundled bin dir, PATH, then ~/.local/bin"""
    # Priority 1: Explicit path from settings
    if explicit:
        if os.path.isfile(explicit) and os.access(explicit, os.X_OK):
            return explicit
        logger.warning(f"[CLI] Configured path for {client} is not executable: {explicit}")

    # Priority 2: Bundled binary
    if bin_dir:
        bundled = os.path.join(bin_dir, client)
        if os.path.isfile(bundled) and os.access(bundled, os.X_OK):
            return bundled

    # Priority 3: System PATH
    system_path = shutil.which(client)
    if system_path:
        return system_path

    # Priority 4: ~/.local/bin explicitly
    local_bin = os.path.expanduser(f"~/.local/bin/{client}")
    if os.path.exists(local_bin):
        return local_bin

    return None


async def _terminate(process: asyncio.subprocess.Process, client: str) -> None:
    """Terminate a child process, force killing it if it ignores SIGTERM."""
    if process.returncode is not None:
        return
    try:
        process.terminate()
        await asyncio.wait_for(process.wait(), timeout=5.0)
    except asyncio.TimeoutError:
        if process.returncode is None:
            try:
                process.kill()
            except ProcessLookupError:
                pass
    except ProcessLookupError:
        pass
    logger.info(f"[CLI] Terminated {client} (pid {process.pid})")


class CliRunner:
    """Runs store CLI clients as child processes and captures their output."""

    def __init__(self, bin_dir: Optional[str] = None,
                 binaries: Optional[Dict[str, str]] = None,
                 default_timeout: Optional[float] = None):
        self.bin_dir = bin_dir
        self.binaries = dict(binaries or {})
        self.default_timeout = default_timeout
        self._resolved: Dict[str, Optional[str]] = {}

    def resolve(self, client: str) -> Optional[str]:
        """Resolve (and memoize) the executable path for a client name."""
        if client not in self._resolved:
            path = find_binary(client, self.bin_dir, self.binaries.get(client))
            if path:
                logger.info(f"[CLI] Using {client}: {path}")
            else:
                logger.warning(f"[CLI] {client} not found - features depending on it are unavailable")
            self._resolved[client] = path
        return self._resolved[client]

    async def run(self, client: str, args: List[str], input_text: Optional[str] = None,
                  timeout: Optional[float] = None) -> CliResult:
        """
        Run a client to completion and capture its output.

        Args:
            client: Client name (e.g. 'legendary')
            args: Argument vector, passed without shell interpretation
            input_text: Optional text written to the child's stdin
            timeout: Seconds before the child is terminated (None = no limit)

        Returns:
            CliResult with decoded stdout/stderr and the exit code
        """
        binary = self.resolve(client)
        if not binary:
            return CliResult('', f'{client} executable not found', NOT_INVOKED)

        timeout = timeout if timeout is not None else self.default_timeout
        logger.debug(f"[CLI] Running: {client} {' '.join(args)}")

        try:
            process = await asyncio.create_subprocess_exec(
                binary, *args,
                stdin=asyncio.subprocess.PIPE if input_text is not None else asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            logger.error(f"[CLI] Failed to start {client}: {e}")
            return CliResult('', str(e), NOT_INVOKED)

        data = input_text.encode('utf-8') if input_text is not None else None
        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(data), timeout=timeout)
        except asyncio.TimeoutError:
            await _terminate(process, client)
            logger.error(f"[CLI] {client} {' '.join(args[:2])} timed out after {timeout}s")
            return CliResult('', f'{client} timed out after {timeout}s', NOT_INVOKED)
        except asyncio.CancelledError:
            await _terminate(process, client)
            raise

        result = CliResult(
            stdout.decode('utf-8', errors='replace'),
            stderr.decode('utf-8', errors='replace'),
            process.returncode,
        )
        if not result.ok:
            logger.warning(
                f"[CLI] {client} {' '.join(args[:2])} exited with {result.exit_code}: "
                f"{result.stderr[:STDERR_LOG_LIMIT]}"
            )
        return result

    async def stream(self, client: str, args: List[str],
                     on_line: Optional[LineCallback] = None) -> CliResult:
        """
        Run a client while feeding its merged stdout/stderr to a callback line by line.

        Used by long operations (installs) that report progress on the console.
        The merged output is also returned in CliResult.stdout.
        """
        binary = self.resolve(client)
        if not binary:
            return CliResult('', f'{client} executable not found', NOT_INVOKED)

        logger.info(f"[CLI] Streaming: {client} {' '.join(args)}")

        try:
            process = await asyncio.create_subprocess_exec(
                binary, *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except OSError as e:
            logger.error(f"[CLI] Failed to start {client}: {e}")
            return CliResult('', str(e), NOT_INVOKED)

        lines: List[str] = []
        try:
            while True:
                raw = await process.stdout.readline()
                if not raw:
                    break
                line = raw.decode('utf-8', errors='replace').rstrip('\r\n')
                lines.append(line)
                if on_line is not None:
                    maybe = on_line(line)
                    if asyncio.iscoroutine(maybe):
                        await maybe
            await process.wait()
        except BaseException:
            # Cancellation or a failing callback must not orphan the child
            await _terminate(process, client)
            raise

        output = '\n'.join(lines)
        if process.returncode != 0:
            logger.warning(
                f"[CLI] {client} {' '.join(args[:2])} exited with {process.returncode}: "
                f"{output[-STDERR_LOG_LIMIT:]}"
            )
            return CliResult(output, output, process.returncode)
        return CliResult(output, '', process.returncode)

    async def is_available(self, client: str) -> bool:
        """True if the client runs and answers --version with exit code 0."""
        result = await self.run(client, ['--version'], timeout=15)
        return result.ok

    async def get_version(self, client: str) -> Optional[str]:
        result = await self.run(client, ['--version'], timeout=15)
        if not result.ok:
            return None
        return result.stdout.strip() or None
