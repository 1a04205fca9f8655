"""Kernel ring buffer scanning and dynamic debug control."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from livepatch_test.config import RunConfig
from livepatch_test.models.result import Verdict
from livepatch_test.result_log import ResultLog
from livepatch_test.runners.base import CommandRunner

log = logging.getLogger(__name__)

KERNEL_CHECK = "kernel"
NO_FLAGS = "_"


@dataclass(frozen=True, kw_only=True)
class KernelAnomalyScanner:
    """Detect crash-class events in the kernel ring buffer.

    Unrelated kernel activity also writes to the buffer, so only the
    configured fault signature counts as an anomaly.
    """

    runner: CommandRunner
    config: RunConfig
    result_log: ResultLog

    async def clear(self) -> None:
        """Clear the ring buffer to get a clean baseline."""
        self.result_log.info("clearing printk buffer")
        result = await self.runner.run(
            [*self.config.kernel_log_command, "-C"],
            timeout=self.config.kernel_log_timeout,
        )
        if not result.succeeded:
            self.result_log.output(result.output)
            self.result_log.info("warning: clearing printk buffer failed")

    async def scan(self) -> Verdict:
        """Read the ring buffer once and look for the fault signature."""
        result = await self.runner.run(
            list(self.config.kernel_log_command),
            timeout=self.config.kernel_log_timeout,
        )
        if not result.succeeded:
            self.result_log.output(result.output)
            return self.result_log.record(
                Verdict.skipped(KERNEL_CHECK, "printk buffer not readable")
            )

        if self.config.fault_signature not in result.output:
            return self.result_log.record(Verdict.passed(KERNEL_CHECK))

        dump = self.config.output_dir / self.config.kernel_log_dump
        dump.write_text(result.output)
        log.debug("Kernel log saved to %s", dump)
        return self.result_log.record(
            Verdict.failed(KERNEL_CHECK, "kernel error detected in printk buffer")
        )


def parse_debug_flags(control: str, function: str) -> str:
    """Extract the flags of a function from dynamic debug control content.

    Control lines look like
    ``kernel/livepatch/transition.c:277 [livepatch]klp_try_switch_task =p "..."``.
    Returns an empty string when the function is not listed.
    """
    for line in control.splitlines():
        fields = line.split()
        if len(fields) < 3:
            continue
        _, site, flags, *_ = fields
        if site.rsplit("]", 1)[-1] == function and flags.startswith("="):
            return flags[1:]
    return ""


@asynccontextmanager
async def dynamic_debug(
    runner: CommandRunner, config: RunConfig, result_log: ResultLog
) -> AsyncGenerator[str | None, None]:
    """Enable verbose debug output of the patch transition for the block.

    The previous flags are captured in the run state and written back on
    every exit path. Yields the captured flags, or None when the control
    file is unavailable and nothing was changed.
    """
    function = config.debug_function
    control = str(config.debug_control)

    current = await runner.run(
        [*config.debug_read_command, control], timeout=config.kernel_log_timeout
    )
    if not current.succeeded:
        result_log.info(f"dynamic debug unavailable, not enabling {function}")
        yield None
        return

    previous = parse_debug_flags(current.output, function)
    result_log.state.debug_setting = previous
    await _write_directive(runner, config, result_log, f"func {function} +p")
    try:
        yield previous
    finally:
        await _write_directive(
            runner, config, result_log, f"func {function} ={previous or NO_FLAGS}"
        )


async def _write_directive(
    runner: CommandRunner, config: RunConfig, result_log: ResultLog, directive: str
) -> None:
    log.debug("Writing dynamic debug directive: %s", directive)
    result = await runner.run(
        [*config.debug_write_command, str(config.debug_control)],
        input=f"{directive}\n",
        timeout=config.kernel_log_timeout,
    )
    if not result.succeeded:
        result_log.output(result.output)
        result_log.info(f"warning: dynamic debug directive failed: {directive}")
