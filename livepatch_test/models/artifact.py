"""Models for patch artifacts and test probes discovered on disk."""

from enum import StrEnum
from pathlib import Path

from pydantic import Field

from livepatch_test.models.base import Model

MODULE_SUFFIX = ".ko"
DISABLED_SUFFIX = ".patch.disabled"


class PatchKind(StrEnum):
    """Expected build outcome of a patch."""

    NORMAL = "normal"
    EXPECT_FAIL = "expect-fail"


class ProbeKind(StrEnum):
    """Role of a test probe in the run."""

    LOAD_BOUND = "load-bound"
    EXPECT_FAIL = "expect-fail"
    CUSTOM = "custom"


class TestProbe(Model):
    """Executable asserting whether patched behavior is observable.

    Exit code zero means the patched behavior was observed.
    """

    __test__ = False

    path: Path = Field(..., description="Path to the probe executable")
    kind: ProbeKind = Field(..., description="Role of the probe")
    prefix: str = Field(..., description="Probe file name without .test")
    patch_prefix: str | None = Field(
        default=None, description="Prefix of the bound patch (load-bound only)"
    )

    @property
    def command(self) -> tuple[str, ...]:
        """Argument vector used to execute the probe."""
        return (str(self.path.absolute()),)

    @property
    def disabled_marker(self) -> Path | None:
        """Sibling file marking the bound patch as disabled."""
        if self.patch_prefix is None:
            return None
        return self.path.with_name(f"{self.patch_prefix}{DISABLED_SUFFIX}")

    def is_disabled(self) -> bool:
        """Check whether the bound patch carries a disabled marker."""
        marker = self.disabled_marker
        return marker is not None and marker.exists()


class PatchArtifact(Model):
    """A patch source file and the identifiers derived from its name."""

    path: Path = Field(..., description="Patch source file")
    prefix: str = Field(..., description="Basename without the .patch suffix")
    module_name: str = Field(..., description="Name of the built module")
    kind: PatchKind = Field(..., description="Expected build outcome")
    probe: TestProbe | None = Field(
        default=None, description="Load-bound probe, if one exists"
    )

    @property
    def expect_fail(self) -> bool:
        """Whether the build of this patch must fail."""
        return self.kind is PatchKind.EXPECT_FAIL

    def module_file(self, output_dir: Path) -> Path:
        """Location of the built module inside the output directory."""
        return output_dir / f"{self.module_name}{MODULE_SUFFIX}"
