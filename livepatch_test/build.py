"""Build patch modules and check the expected build outcome."""

import logging
import shutil
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from livepatch_test.config import RunConfig
from livepatch_test.models.artifact import MODULE_SUFFIX, PatchArtifact
from livepatch_test.models.result import Verdict
from livepatch_test.naming import COMBINED_CHECK, COMBINED_MODULE
from livepatch_test.result_log import ResultLog
from livepatch_test.runners.base import CommandResult, CommandRunner

log = logging.getLogger(__name__)

BUILD_CACHED = "build cached"


def module_built(verdict: Verdict) -> bool:
    """Whether a build verdict left a usable module for this run.

    Only meaningful for patches expected to build.
    """
    return verdict.status == "pass" or verdict.reason == BUILD_CACHED


@dataclass(frozen=True, kw_only=True)
class Builder:
    """Invoke the external builder and preserve its diagnostics."""

    runner: CommandRunner
    config: RunConfig
    result_log: ResultLog

    async def build(
        self, module_name: str, patch_files: Sequence[Path]
    ) -> CommandResult:
        """Build one module from one or more patch files."""
        command = [*self.config.builder_command, *self.config.builder_options]
        if self.config.jobs is not None:
            command += ["-j", str(self.config.jobs)]
        command += ["-n", module_name, *(str(p.absolute()) for p in patch_files)]

        result = await self.runner.run(command, timeout=self.config.build_timeout)
        self.result_log.output(result.output)
        return result

    def preserve_diagnostics(self, name: str) -> None:
        """Copy the builder's diagnostics log for post-mortem."""
        target = self.config.output_dir / name
        try:
            shutil.copyfile(self.config.builder_log, target)
        except OSError as e:
            log.warning(
                "Cannot preserve builder log %s: %s", self.config.builder_log, e
            )
        else:
            log.debug("Builder log preserved as %s", target)


@dataclass(frozen=True, kw_only=True)
class BuildOrchestrator:
    """Build individual patches and classify the outcome."""

    builder: Builder

    @property
    def config(self) -> RunConfig:
        return self.builder.config

    async def build(self, artifact: PatchArtifact) -> Verdict:
        """Build a patch and compare the outcome with its expected kind.

        A build failure is returned as a verdict, never raised.
        """
        result_log = self.builder.result_log
        module_file = artifact.module_file(self.config.output_dir)

        if self.config.cached and not artifact.expect_fail and module_file.exists():
            return result_log.record(
                Verdict.skipped(artifact.prefix, BUILD_CACHED)
            )

        result_log.info(f"build: {artifact.prefix}")
        result = await self.builder.build(artifact.module_name, [artifact.path])

        if result.timed_out:
            return result_log.record(
                Verdict.failed(artifact.prefix, "build timed out")
            )

        if result.succeeded:
            if artifact.expect_fail:
                return result_log.record(
                    Verdict.failed(
                        artifact.prefix, "build succeeded when it should have failed"
                    )
                )
            return result_log.record(Verdict.passed(artifact.prefix))

        if artifact.expect_fail:
            return result_log.record(Verdict.passed(artifact.prefix))

        self.builder.preserve_diagnostics(f"{artifact.prefix}.log")
        return result_log.record(Verdict.failed(artifact.prefix, "build failed"))


@dataclass(frozen=True, kw_only=True)
class CombinedModuleAssembler:
    """Build a single module out of every patch expected to build."""

    builder: Builder

    @property
    def config(self) -> RunConfig:
        return self.builder.config

    @property
    def module_file(self) -> Path:
        """Location of the combined module."""
        return self.config.output_dir / f"{COMBINED_MODULE}{MODULE_SUFFIX}"

    async def assemble(self, artifacts: Sequence[PatchArtifact]) -> Verdict:
        """Build the combined module when at least two patches qualify."""
        result_log = self.builder.result_log

        qualifying: list[PatchArtifact] = []
        for artifact in artifacts:
            if artifact.expect_fail:
                result_log.info(f"combine: skipping {artifact.path.name}")
                continue
            qualifying.append(artifact)

        if len(qualifying) <= 1:
            return result_log.record(
                Verdict.skipped(COMBINED_CHECK, f"only {len(qualifying)} patch(es)")
            )

        if self.config.cached and self.module_file.exists():
            return result_log.record(Verdict.skipped(COMBINED_CHECK, BUILD_CACHED))

        result_log.info("build: combined module")
        result = await self.builder.build(
            COMBINED_MODULE, [artifact.path for artifact in qualifying]
        )

        if result.timed_out:
            return result_log.record(
                Verdict.failed(COMBINED_CHECK, "combined build timed out")
            )
        if not result.succeeded:
            self.builder.preserve_diagnostics(self.config.combined_log)
            return result_log.record(
                Verdict.failed(COMBINED_CHECK, "combined build failed")
            )
        return result_log.record(Verdict.passed(COMBINED_CHECK))
