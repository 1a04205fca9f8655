"""Shared fixtures for unit tests."""

from collections.abc import Sequence
from pathlib import Path
from typing import Protocol

import pytest

from livepatch_test.config import RunConfig
from livepatch_test.result_log import ResultLog
from livepatch_test.testing.fake_kernel import FakeKernel


class WriteFilesFn(Protocol):
    """Protocol for the patch directory file writer."""

    def __call__(self, *names: str) -> Sequence[Path]:
        """Create empty files in the patch directory and return their paths."""


@pytest.fixture
def config(tmp_path: Path) -> RunConfig:
    """Create a run configuration writing into the temporary directory."""
    output_dir = tmp_path / "out"
    output_dir.mkdir()
    return RunConfig(
        output_dir=output_dir,
        builder_log=tmp_path / "kpatch" / "build.log",
    )


@pytest.fixture
def kernel(config: RunConfig) -> FakeKernel:
    """Create a fake kernel and toolchain."""
    return FakeKernel(config=config)


@pytest.fixture
def result_log(config: RunConfig) -> ResultLog:
    """Create a result log in the output directory."""
    return ResultLog(path=config.run_log_path)


@pytest.fixture
def patch_dir(tmp_path: Path) -> Path:
    """Create an empty patch directory."""
    directory = tmp_path / "patches"
    directory.mkdir()
    return directory


@pytest.fixture
def write_files(patch_dir: Path) -> WriteFilesFn:
    """Return a function creating files in the patch directory."""

    def _write(*names: str) -> Sequence[Path]:
        paths = [patch_dir / name for name in names]
        for path in paths:
            path.write_text("")
        return paths

    return _write
