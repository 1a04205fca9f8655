"""Run controller sequencing builds, load tests and kernel checks."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from livepatch_test.build import (
    Builder,
    BuildOrchestrator,
    CombinedModuleAssembler,
    module_built,
)
from livepatch_test.config import RunConfig
from livepatch_test.custom_tests import CustomTestRunner
from livepatch_test.discovery import TestPlan
from livepatch_test.kernel import KernelAnomalyScanner, dynamic_debug
from livepatch_test.loader import ModuleLoader
from livepatch_test.models.artifact import TestProbe
from livepatch_test.models.result import RunState, Verdict
from livepatch_test.result_log import ResultLog
from livepatch_test.runners.base import CommandRunner
from livepatch_test.verifier import LoadUnloadVerifier

log = logging.getLogger(__name__)


@dataclass(frozen=True, kw_only=True)
class RunController:
    """Drive one complete test run over a plan.

    The pipeline order is fixed: module state is shared kernel-wide, so every
    step runs to completion before the next starts and the modules are forced
    unloaded at fixed checkpoints whatever failed before.
    """

    runner: CommandRunner
    config: RunConfig
    result_log: ResultLog

    @property
    def state(self) -> RunState:
        return self.result_log.state

    async def run(self, plan: TestPlan) -> RunState:
        """Run the whole pipeline and return the accumulated state."""
        config = self.config
        builder = Builder(runner=self.runner, config=config, result_log=self.result_log)
        build = BuildOrchestrator(builder=builder)
        assembler = CombinedModuleAssembler(builder=builder)
        loader = ModuleLoader(
            runner=self.runner, config=config, result_log=self.result_log
        )
        verifier = LoadUnloadVerifier(runner=self.runner, config=config, loader=loader)
        custom = CustomTestRunner(
            runner=self.runner, config=config, result_log=self.result_log
        )
        scanner = KernelAnomalyScanner(
            runner=self.runner, config=config, result_log=self.result_log
        )

        log.info(
            "Testing %d patch(es) and %d probe(s) (quick=%s, cached=%s)",
            len(plan.patches),
            len(plan.probes),
            config.quick,
            config.cached,
        )

        self.remove_stale_diagnostics(plan)
        await scanner.clear()

        builds: dict[str, Verdict] = {}
        for artifact in plan.patches:
            # Quick mode still builds fail-expected patches; the check is cheap.
            if config.quick and not artifact.expect_fail:
                continue
            builds[artifact.prefix] = await build.build(artifact)

        assembly = await assembler.assemble(plan.patches)

        await loader.unload_all()

        async with dynamic_debug(self.runner, config, self.result_log):
            if not config.quick:
                for artifact in plan.patches:
                    if artifact.expect_fail:
                        continue
                    await verifier.verify(
                        artifact, built=module_built(builds[artifact.prefix])
                    )

            await verifier.verify_combined(
                assembler.module_file,
                self.combined_probes(plan),
                built=module_built(assembly),
            )

            if not config.quick:
                for probe in plan.custom_probes:
                    await loader.unload_all()
                    await custom.run(probe)

            await loader.unload_all()

        await scanner.scan()

        self.result_log.summary()
        return self.state

    def remove_stale_diagnostics(self, plan: TestPlan) -> None:
        """Delete diagnostics an earlier run left in the output directory."""
        config = self.config
        names = {
            config.kernel_log_dump,
            config.combined_log,
            *(f"{artifact.prefix}.log" for artifact in plan.patches),
        }
        names.discard(config.run_log)
        for name in sorted(names):
            path = config.output_dir / name
            if path.exists():
                log.debug("Removing stale %s", path)
                path.unlink()

    @staticmethod
    def combined_probes(plan: TestPlan) -> Sequence[TestProbe]:
        """Load-bound probes checked against the combined module.

        Probes bound to fail-expected patches are left out; probes of
        disabled patches stay in so their unpatched state is still checked.
        """
        fail_prefixes = {p.prefix for p in plan.patches if p.expect_fail}
        return [
            probe
            for probe in plan.load_bound_probes
            if probe.patch_prefix not in fail_prefixes
        ]
