"""Abstract interface for invoking external tools."""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass


@dataclass(frozen=True, kw_only=True)
class CommandResult:
    """Outcome of one external command.

    Output holds stdout and stderr merged in the order they were written.
    """

    returncode: int
    output: str = ""
    timed_out: bool = False

    @property
    def succeeded(self) -> bool:
        """Whether the command exited with status zero in time."""
        return self.returncode == 0 and not self.timed_out


class CommandRunner(ABC):
    """Capability to run build, load, unload and probe commands.

    Every interaction of a run with the system goes through this interface,
    so the orchestration logic can be exercised against a fake implementation
    without kernel privileges.
    """

    @abstractmethod
    async def run(
        self,
        command: Sequence[str],
        *,
        input: str | None = None,
        timeout: float | None = None,
    ) -> CommandResult:
        """Run a command to completion.

        Args:
            command: Argument vector, program first
            input: Text written to the command's stdin
            timeout: Seconds before the command is killed (None waits forever)

        Returns:
            The command result; a timeout is reported through ``timed_out``
            rather than raised

        """
