"""Command runner executing tools as local subprocesses."""

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from livepatch_test.runners.base import CommandResult, CommandRunner

log = logging.getLogger(__name__)

COMMAND_NOT_FOUND = 127


@dataclass(frozen=True, kw_only=True)
class LocalCommandRunner(CommandRunner):
    """Run commands with asyncio subprocesses in a working directory."""

    cwd: Path

    async def run(
        self,
        command: Sequence[str],
        *,
        input: str | None = None,
        timeout: float | None = None,
    ) -> CommandResult:
        """Run a command, merging stderr into stdout."""
        log.debug("Running %s", " ".join(command))
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                cwd=self.cwd,
                stdin=asyncio.subprocess.PIPE
                if input is not None
                else asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except OSError as e:
            log.debug("Cannot start %s: %s", command[0], e)
            return CommandResult(returncode=COMMAND_NOT_FOUND, output=f"{e}\n")

        stdin = input.encode() if input is not None else None
        try:
            stdout, _ = await asyncio.wait_for(process.communicate(stdin), timeout)
        except TimeoutError:
            log.debug("Killing %s after %ss", command[0], timeout)
            process.kill()
            returncode = await process.wait()
            return CommandResult(returncode=returncode, timed_out=True)

        return CommandResult(
            returncode=await process.wait(),
            output=stdout.decode(errors="replace"),
        )
