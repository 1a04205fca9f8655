"""Derive artifact identifiers from patch and probe file names."""

from pathlib import Path

from livepatch_test.models.artifact import (
    PatchArtifact,
    PatchKind,
    ProbeKind,
    TestProbe,
)

PATCH_SUFFIX = ".patch"
TEST_SUFFIX = ".test"
FAIL_MARKER = "-FAIL"
LOADED_SUFFIX = "-LOADED"
MODULE_PREFIX = "test-"
COMBINED_MODULE = f"{MODULE_PREFIX}COMBINED"
COMBINED_CHECK = "combined"


def strip_suffix(name: str, suffix: str) -> str:
    """Remove a trailing suffix from a file name, if present."""
    return name[: -len(suffix)] if name.endswith(suffix) else name


def patch_artifact(path: Path) -> PatchArtifact:
    """Build the artifact for a patch file.

    The load-bound probe is the sibling ``<prefix>-LOADED.test`` and is only
    attached when the file exists at construction time.
    """
    prefix = strip_suffix(path.name, PATCH_SUFFIX)
    kind = PatchKind.EXPECT_FAIL if FAIL_MARKER in prefix else PatchKind.NORMAL

    probe_path = path.with_name(f"{prefix}{LOADED_SUFFIX}{TEST_SUFFIX}")
    probe = classify_probe(probe_path) if probe_path.exists() else None

    return PatchArtifact(
        path=path,
        prefix=prefix,
        module_name=f"{MODULE_PREFIX}{prefix}",
        kind=kind,
        probe=probe,
    )


def classify_probe(path: Path) -> TestProbe:
    """Classify a probe executable by its file name."""
    prefix = strip_suffix(path.name, TEST_SUFFIX)

    if prefix.endswith(LOADED_SUFFIX):
        return TestProbe(
            path=path,
            kind=ProbeKind.LOAD_BOUND,
            prefix=prefix,
            patch_prefix=strip_suffix(prefix, LOADED_SUFFIX),
        )
    if prefix.endswith(FAIL_MARKER):
        return TestProbe(path=path, kind=ProbeKind.EXPECT_FAIL, prefix=prefix)
    return TestProbe(path=path, kind=ProbeKind.CUSTOM, prefix=prefix)
