"""Run log mirroring every diagnostic line and counting failures."""

import logging
from dataclasses import dataclass, field
from pathlib import Path

from livepatch_test.models.result import RunState, Verdict

log = logging.getLogger(__name__)

MAX_EXIT_CODE = 255


@dataclass(kw_only=True)
class ResultLog:
    """Append-only sink for a run.

    Progress and failure lines go to the console and to the run log file,
    external tool output only to the file. The failure counter in the run
    state is the sole authority for the exit status.
    """

    path: Path
    state: RunState = field(default_factory=RunState)

    def __post_init__(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text("")

    @property
    def failures(self) -> int:
        """Number of failures recorded so far."""
        return self.state.failures

    @property
    def exit_code(self) -> int:
        """Process exit status for the recorded failures."""
        return min(self.state.failures, MAX_EXIT_CODE)

    def info(self, line: str) -> None:
        """Record a progress line."""
        log.info("%s", line)
        self._append(line)

    def error(self, line: str) -> None:
        """Record a failure line and count it."""
        log.error("%s", line)
        self.state.failures += 1
        self._append(f"ERROR: {line}")

    def output(self, text: str) -> None:
        """Append external tool output to the run log file."""
        if not text:
            return
        log.debug("%s", text.rstrip("\n"))
        with self.path.open("a") as f:
            f.write(text if text.endswith("\n") else f"{text}\n")

    def record(self, verdict: Verdict) -> Verdict:
        """Record a verdict; FAIL and SKIP verdicts are always logged."""
        self.state.verdicts.append(verdict)
        if verdict.status == "fail":
            self.error(f"{verdict.check}: {verdict.reason}")
        elif verdict.status == "skip":
            self.info(f"{verdict.check}: skipped ({verdict.reason})")
        return verdict

    def summary(self) -> None:
        """Emit the final summary line."""
        if self.state.failures:
            self.info(f"{self.state.failures} errors encountered")
            log.info("see %s for more information", self.path)
        else:
            self.info("SUCCESS")

    def _append(self, line: str) -> None:
        self.state.lines.append(line)
        with self.path.open("a") as f:
            f.write(f"{line}\n")
