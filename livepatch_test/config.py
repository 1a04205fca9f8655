"""Configuration for a test run and the external tools it drives."""

import json
from collections.abc import Sequence
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError


class ToolConfigError(Exception):
    """Raised when a tool configuration override cannot be applied."""


class RunConfig(BaseModel):
    """Commands, paths and switches used by a test run."""

    builder_command: Sequence[str] = ("kpatch-build",)
    builder_options: Sequence[str] = ("--non-replace", "--skip-cleanup")
    builder_log: Path = Field(
        default_factory=lambda: Path.home() / ".kpatch" / "build.log",
        description="Diagnostics log written by the builder",
    )
    loader_command: Sequence[str] = ("sudo", "kpatch")
    kernel_log_command: Sequence[str] = ("sudo", "dmesg")
    debug_control: Path = Path("/sys/kernel/debug/dynamic_debug/control")
    debug_read_command: Sequence[str] = ("sudo", "cat")
    debug_write_command: Sequence[str] = ("sudo", "tee")
    debug_function: str = "klp_try_switch_task"

    output_dir: Path = Field(default_factory=Path.cwd)
    run_log: str = "test.log"
    kernel_log_dump: str = "dmesg.log"
    combined_log: str = "combined.log"
    fault_signature: str = "Call Trace"

    build_timeout: float | None = None
    load_timeout: float | None = None
    probe_timeout: float | None = None
    kernel_log_timeout: float | None = 60

    jobs: int | None = Field(default=None, ge=1)
    cached: bool = False
    quick: bool = False

    @property
    def run_log_path(self) -> Path:
        """Location of the cumulative run log."""
        return self.output_dir / self.run_log

    def with_overrides(self, tool_config_json: str) -> "RunConfig":
        """Return a copy with fields replaced from a JSON object.

        Raises:
            ToolConfigError: If the JSON is malformed or names invalid fields

        """
        if not tool_config_json.strip():
            return self
        try:
            overrides = json.loads(tool_config_json)
        except json.JSONDecodeError as e:
            raise ToolConfigError(f"Invalid tool configuration JSON: {e}") from e
        if not isinstance(overrides, dict):
            raise ToolConfigError("Tool configuration must be a JSON object")

        unknown = sorted(set(overrides) - set(type(self).model_fields))
        if unknown:
            raise ToolConfigError(f"Unknown tool configuration keys: {unknown}")

        try:
            return type(self).model_validate(self.model_dump() | overrides)
        except ValidationError as e:
            raise ToolConfigError(f"Invalid tool configuration: {e}") from e
