"""Load/unload protocol with before and after probe checks."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from livepatch_test.config import RunConfig
from livepatch_test.loader import ModuleLoader
from livepatch_test.models.artifact import PatchArtifact, ProbeKind, TestProbe
from livepatch_test.models.result import Verdict
from livepatch_test.naming import COMBINED_CHECK
from livepatch_test.result_log import ResultLog
from livepatch_test.runners.base import CommandResult, CommandRunner

log = logging.getLogger(__name__)


@dataclass(frozen=True, kw_only=True)
class LoadUnloadVerifier:
    """Drive modules through probe, load, probe, unload, probe.

    A probe exiting zero means the patched behavior is observable; it must
    not be before the load, must be while loaded and must not be after the
    unload. Every contradiction is recorded and the run continues.
    """

    runner: CommandRunner
    config: RunConfig
    loader: ModuleLoader

    @property
    def result_log(self) -> ResultLog:
        return self.loader.result_log

    async def verify(
        self, artifact: PatchArtifact, *, built: bool = True
    ) -> Sequence[Verdict]:
        """Run the load/unload protocol for one patch module.

        ``built`` is False when this run did not produce the module; a file
        left over from an earlier run is then never loaded.
        """
        check = artifact.prefix
        if artifact.expect_fail:
            return [self.result_log.record(Verdict.skipped(check, "expected to fail"))]

        module_file = artifact.module_file(self.config.output_dir)
        if skipped := self._unavailable(check, module_file, built):
            return [skipped]

        probes = [artifact.probe] if artifact.probe is not None else []
        if probes:
            self.result_log.info(f"load test: {check}")
        else:
            self.result_log.info(f"load test: {check} (no test prog)")

        return await self._protocol(check, module_file, probes, probes, probes)

    async def verify_combined(
        self, module_file: Path, probes: Sequence[TestProbe], *, built: bool = True
    ) -> Sequence[Verdict]:
        """Run the load/unload protocol for the combined module.

        Every load-bound probe is checked; probes whose patch carries a
        ``.patch.disabled`` marker are only left out of the after-load check.
        """
        if skipped := self._unavailable(COMBINED_CHECK, module_file, built):
            return [skipped]

        self.result_log.info("load test: combined module")
        await self.loader.unload_all()

        bound = [p for p in probes if p.kind is ProbeKind.LOAD_BOUND]
        enabled: list[TestProbe] = []
        for probe in bound:
            if probe.is_disabled():
                self.result_log.info(
                    f"combine: {probe.path.name} disabled, not checked after load"
                )
            else:
                enabled.append(probe)

        return await self._protocol(COMBINED_CHECK, module_file, bound, enabled, bound)

    def _unavailable(
        self, check: str, module_file: Path, built: bool
    ) -> Verdict | None:
        if not built:
            reason = f"{module_file.name} not built"
        elif not module_file.exists():
            reason = f"can't find {module_file.name}"
        else:
            return None
        return self.result_log.record(Verdict.skipped(check, reason))

    async def _protocol(
        self,
        check: str,
        module_file: Path,
        before: Sequence[TestProbe],
        after_load: Sequence[TestProbe],
        after_unload: Sequence[TestProbe],
    ) -> Sequence[Verdict]:
        verdicts: list[Verdict] = []

        def fail(reason: str) -> Sequence[Verdict]:
            verdicts.append(self.result_log.record(Verdict.failed(check, reason)))
            return verdicts

        # A positive probe before load means the baseline is already patched.
        for probe in before:
            if (await self._observe(check, probe, verdicts)).succeeded:
                return fail(f"{probe.path.name} succeeded before load")

        log.debug("%s: loading %s", check, module_file.name)
        load = await self.loader.load(module_file)
        if not load.succeeded:
            return fail("load timed out" if load.timed_out else "load failed")

        for probe in after_load:
            result = await self._observe(check, probe, verdicts)
            # A timeout has already been recorded as this probe's failure.
            if not result.succeeded and not result.timed_out:
                fail(f"{probe.path.name} failed after load")

        log.debug("%s: unloading %s", check, module_file.name)
        unload = await self.loader.unload(module_file)
        if not unload.succeeded:
            return fail("unload timed out" if unload.timed_out else "unload failed")

        for probe in after_unload:
            if (await self._observe(check, probe, verdicts)).succeeded:
                fail(f"{probe.path.name} succeeded after unload")

        if not verdicts:
            verdicts.append(self.result_log.record(Verdict.passed(check)))
        return verdicts

    async def _observe(
        self, check: str, probe: TestProbe, verdicts: list[Verdict]
    ) -> CommandResult:
        """Run a probe, recording a failure when it times out."""
        result = await run_probe(self.runner, self.config, self.result_log, probe)
        if result.timed_out:
            verdicts.append(
                self.result_log.record(
                    Verdict.failed(check, f"{probe.path.name} timed out")
                )
            )
        return result


async def run_probe(
    runner: CommandRunner,
    config: RunConfig,
    result_log: ResultLog,
    probe: TestProbe,
) -> CommandResult:
    """Execute a probe with no arguments, appending its output to the log."""
    result = await runner.run(probe.command, timeout=config.probe_timeout)
    result_log.output(result.output)
    return result
