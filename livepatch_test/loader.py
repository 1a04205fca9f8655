"""Load and unload patch modules through the external loader tool."""

import logging
from dataclasses import dataclass
from pathlib import Path

from livepatch_test.config import RunConfig
from livepatch_test.result_log import ResultLog
from livepatch_test.runners.base import CommandResult, CommandRunner

log = logging.getLogger(__name__)


@dataclass(frozen=True, kw_only=True)
class ModuleLoader:
    """Wrapper around ``<loader> load|unload`` invocations."""

    runner: CommandRunner
    config: RunConfig
    result_log: ResultLog

    async def load(self, module_file: Path) -> CommandResult:
        """Load a patch module."""
        return await self._loader("load", str(module_file))

    async def unload(self, module_file: Path) -> CommandResult:
        """Unload a patch module."""
        return await self._loader("unload", str(module_file))

    async def unload_all(self) -> CommandResult:
        """Unload every patch module, best-effort."""
        result = await self._loader("unload", "--all")
        if not result.succeeded:
            self.result_log.info("warning: unloading all patch modules failed")
        return result

    async def _loader(self, *args: str) -> CommandResult:
        log.debug("Loader: %s", " ".join(args))
        result = await self.runner.run(
            [*self.config.loader_command, *args],
            timeout=self.config.load_timeout,
        )
        self.result_log.output(result.output)
        return result
