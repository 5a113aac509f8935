"""Run report: ordered verdicts, per-severity counts, and renderers."""

from __future__ import annotations

import datetime
import json
from dataclasses import dataclass, field
from typing import Any

from bibtex_validator.models import EntryVerdict, Severity

_SYMBOLS = {
    Severity.OK: "✓",
    Severity.WARN: "!",
    Severity.ERROR: "✗",
    Severity.NOT_FOUND: "?",
    Severity.SKIPPED: "-",
    Severity.MALFORMED: "✗",
}


def empty_counts() -> dict[Severity, int]:
    return {s: 0 for s in Severity}


@dataclass
class Report:
    """Verdicts in input order plus counts for every severity bucket."""

    verdicts: list[EntryVerdict] = field(default_factory=list)
    counts: dict[Severity, int] = field(default_factory=empty_counts)
    interrupted: bool = False

    @property
    def total(self) -> int:
        return len(self.verdicts)

    def count(self, severity: Severity) -> int:
        return self.counts.get(severity, 0)

    def has_errors(self) -> bool:
        return self.count(Severity.ERROR) > 0 or self.count(Severity.MALFORMED) > 0

    def exit_code(self, strict: bool = False) -> int:
        """0 when clean, 1 on errors (or, when strict, on warnings and misses), 130 when interrupted."""
        if self.interrupted:
            return 130
        if self.has_errors():
            return 1
        if strict and (self.count(Severity.WARN) > 0 or self.count(Severity.NOT_FOUND) > 0):
            return 1
        return 0

    def summary(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "counts": {s.value: n for s, n in self.counts.items()},
            "interrupted": self.interrupted,
        }

    def to_dict(self, verbose: bool = False) -> dict[str, Any]:
        """Full JSON report."""
        summary = self.summary()
        summary["timestamp"] = datetime.datetime.now().isoformat()
        return {"summary": summary, "entries": [v.to_dict(verbose=verbose) for v in self.verdicts]}

    def to_jsonl(self) -> list[str]:
        """One JSON object per verdict."""
        lines = []
        for v in self.verdicts:
            lines.append(
                json.dumps(
                    {
                        "key": v.key,
                        "severity": v.severity.value,
                        "chosen_provider": v.chosen_provider,
                        "fields": sorted({d.field for d in v.discrepancies}),
                        "messages": [d.message for d in v.discrepancies],
                        "detail": v.detail,
                    },
                    ensure_ascii=False,
                )
            )
        return lines


class ReportAssembler:
    """Collects verdicts as they complete and emits them in input order."""

    def __init__(self) -> None:
        self._verdicts: dict[int, EntryVerdict] = {}

    def add(self, index: int, verdict: EntryVerdict) -> None:
        self._verdicts[index] = verdict

    def build(self, interrupted: bool = False) -> Report:
        verdicts = [self._verdicts[i] for i in sorted(self._verdicts)]
        counts = empty_counts()
        for v in verdicts:
            counts[v.severity] += 1
        return Report(verdicts=verdicts, counts=counts, interrupted=interrupted)


# ------------- Text rendering -------------


def format_verdict(verdict: EntryVerdict, verbose: bool = False) -> list[str]:
    head = f"{_SYMBOLS[verdict.severity]} {verdict.key} [{verdict.severity.label}]"
    if verdict.chosen_provider:
        head += f" via {verdict.chosen_provider}"
    lines = [head]
    if verdict.detail and verdict.severity in (Severity.MALFORMED, Severity.SKIPPED):
        lines.append(f"    {verdict.detail}")
    for d in verdict.discrepancies:
        lines.append(f"    [{d.severity.label}] {d.field}: {d.message}")
        if verbose and d.field in ("title", "doi", "venue"):
            lines.append(f"        local:  {d.local_value}")
            lines.append(f"        remote: {d.remote_value}")
    if verbose:
        for name, outcome in verdict.outcomes.items():
            cached = " (cached)" if outcome.cached else ""
            lines.append(f"    - {name}: {outcome.status}{cached}")
    return lines


def format_report(report: Report, verbose: bool = False) -> str:
    """Human-readable report.

    Without ``verbose`` only entries that need attention are listed.
    """
    lines: list[str] = []
    for verdict in report.verdicts:
        if not verbose and verdict.severity in (Severity.OK, Severity.SKIPPED):
            continue
        lines.extend(format_verdict(verdict, verbose))
    if lines:
        lines.append("")
    lines.append("=" * 60)
    lines.append(f"SUMMARY: {report.total} entries checked")
    for severity, n in report.counts.items():
        lines.append(f"  {severity.label}: {n}")
    if report.interrupted:
        lines.append("Run was interrupted; unfinished provider calls are reported as timed out.")
    return "\n".join(lines)
