"""Structured summaries of hook registration for a session."""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Dict, Iterable, List

INSTALLED = "installed"
SKIPPED = "skipped"


@dataclass(frozen=True)
class RegistrationOutcome:
    """Result of installing one handler; ``reason`` explains a skip."""

    label: str
    status: str
    reason: str | None = None

    @property
    def installed(self) -> bool:
        return self.status == INSTALLED

    @classmethod
    def ok(cls, label: str) -> "RegistrationOutcome":
        return cls(label, INSTALLED)

    @classmethod
    def skip(cls, label: str, reason: object) -> "RegistrationOutcome":
        return cls(label, SKIPPED, str(reason))


@dataclass
class RegistrationReport:
    """Summarises which interception handlers a session managed to install."""

    outcomes: List[RegistrationOutcome] = field(default_factory=list)

    def add(self, outcome: RegistrationOutcome) -> RegistrationOutcome:
        self.outcomes.append(outcome)
        return outcome

    def extend(self, outcomes: Iterable[RegistrationOutcome]) -> None:
        self.outcomes.extend(outcomes)

    @property
    def installed(self) -> List[RegistrationOutcome]:
        return [outcome for outcome in self.outcomes if outcome.installed]

    @property
    def skipped(self) -> List[RegistrationOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.installed]

    def to_text(self) -> str:
        """Format the report as a human-readable summary."""

        lines: List[str] = []
        lines.append(f"Installed {len(self.installed)} of {len(self.outcomes)} hooks")
        for outcome in self.installed:
            lines.append(f"  + {outcome.label}")
        if self.skipped:
            lines.append("Skipped:")
            lines.extend(f"  - {outcome.label}: {outcome.reason}" for outcome in self.skipped)
        return "\n".join(lines)

    def to_json(self) -> Dict[str, object]:
        return {
            "installed": len(self.installed),
            "skipped": len(self.skipped),
            "outcomes": [asdict(outcome) for outcome in self.outcomes],
        }


__all__ = ["INSTALLED", "SKIPPED", "RegistrationOutcome", "RegistrationReport"]
