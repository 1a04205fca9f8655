"""Fixtures for integration tests running real subprocesses."""

import stat
from pathlib import Path
from typing import Protocol

import pytest


class WriteScriptFn(Protocol):
    """Protocol for executable script creation function."""

    def __call__(self, path: Path, body: str) -> Path:
        """Write an executable shell script and return its path."""


@pytest.fixture
def write_script() -> WriteScriptFn:
    """Return a function to create executable shell scripts."""

    def _write(path: Path, body: str) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(f"#!/bin/sh\n{body}")
        path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return path

    return _write
