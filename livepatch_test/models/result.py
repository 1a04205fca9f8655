"""Models for check verdicts and the accumulated run state."""

from dataclasses import dataclass, field
from typing import Literal


@dataclass(frozen=True, kw_only=True)
class Verdict:
    """Outcome of a single check.

    The caller logs progress; a verdict only carries what the check concluded.
    """

    check: str
    status: Literal["pass", "fail", "skip"]
    reason: str | None = None

    @classmethod
    def passed(cls, check: str) -> "Verdict":
        """Build a PASS verdict."""
        return cls(check=check, status="pass")

    @classmethod
    def failed(cls, check: str, reason: str) -> "Verdict":
        """Build a FAIL verdict."""
        return cls(check=check, status="fail", reason=reason)

    @classmethod
    def skipped(cls, check: str, reason: str) -> "Verdict":
        """Build a SKIP verdict."""
        return cls(check=check, status="skip", reason=reason)


@dataclass(kw_only=True)
class RunState:
    """Mutable state threaded through every component of a run."""

    failures: int = 0
    lines: list[str] = field(default_factory=list)
    verdicts: list[Verdict] = field(default_factory=list)
    debug_setting: str | None = None
