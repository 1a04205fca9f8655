"""Discover the patches and probes taking part in a run."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from livepatch_test.models.artifact import PatchArtifact, ProbeKind, TestProbe
from livepatch_test.naming import (
    FAIL_MARKER,
    LOADED_SUFFIX,
    PATCH_SUFFIX,
    TEST_SUFFIX,
    classify_probe,
    patch_artifact,
    strip_suffix,
)

log = logging.getLogger(__name__)


class DiscoveryError(Exception):
    """Raised when the set of patches to test cannot be established."""


@dataclass(frozen=True, kw_only=True)
class TestPlan:
    """Patches and probes of a run, classified once at discovery time."""

    __test__ = False

    patches: Sequence[PatchArtifact]
    probes: Sequence[TestProbe]

    @property
    def load_bound_probes(self) -> Sequence[TestProbe]:
        """Probes bound to a patch load/unload cycle."""
        return [p for p in self.probes if p.kind is ProbeKind.LOAD_BOUND]

    @property
    def custom_probes(self) -> Sequence[TestProbe]:
        """Free-standing probes run once under a clean baseline."""
        return [p for p in self.probes if p.kind is ProbeKind.CUSTOM]


def discover(directory: Path) -> TestPlan:
    """Collect every ``*.patch`` and ``*.test`` file in a directory.

    Raises:
        DiscoveryError: If the directory holds no patch files

    """
    patch_files = sorted(directory.glob(f"*{PATCH_SUFFIX}"))
    if not patch_files:
        raise DiscoveryError(f"can't find any patches in {directory}")

    test_files = sorted(directory.glob(f"*{TEST_SUFFIX}"))
    log.debug(
        "Discovered %d patch(es) and %d probe(s) in %s",
        len(patch_files),
        len(test_files),
        directory,
    )

    return TestPlan(
        patches=[patch_artifact(path) for path in patch_files],
        probes=[classify_probe(path) for path in test_files],
    )


def collect(patch_files: Sequence[Path]) -> TestPlan:
    """Build a plan from explicitly named patch files.

    For each patch the sibling ``<prefix>-FAIL.test`` and
    ``<prefix>-LOADED.test`` probes are added when they exist.

    Raises:
        DiscoveryError: If no patch is given or a patch file does not exist

    """
    if not patch_files:
        raise DiscoveryError("no patches given")

    patches: list[PatchArtifact] = []
    probes: list[TestProbe] = []
    for path in patch_files:
        if not path.is_file():
            raise DiscoveryError(f"patch file not found: {path}")
        patches.append(patch_artifact(path))

        prefix = strip_suffix(path.name, PATCH_SUFFIX)
        for marker in (FAIL_MARKER, LOADED_SUFFIX):
            sibling = path.with_name(f"{prefix}{marker}{TEST_SUFFIX}")
            if sibling.exists():
                probes.append(classify_probe(sibling))

    return TestPlan(patches=patches, probes=probes)
