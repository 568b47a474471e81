"""
Recoverable conditions found while compiling a layout.

Every skipped clip, effect or transition is reported here with the id of the
element and the reason, so a failed render can be debugged from its output.
"""

import sys
import warnings
from typing import List


class LayoutWarning(UserWarning):
    pass


class Diagnostic(object):
    """One recoverable condition: what it concerns and why."""
    def __init__(self, subject: str, reason: str):
        self.subject = subject
        self.reason = reason

    def __str__(self) -> str:
        return f"{self.subject}: {self.reason}"

    def __repr__(self) -> str:
        return f"Diagnostic({self.subject!r}, {self.reason!r})"


class Diagnostics(object):
    """Collects diagnostics for a single render."""

    def __init__(self, echo: bool = True):
        self.echo = echo
        self.records: List[Diagnostic] = []

    def warn(self, subject: str, reason: str) -> Diagnostic:
        """Emits a non-blocking warning message."""
        record = Diagnostic(subject, reason)
        self.records.append(record)
        warnings.warn(f"Layout Warning: {record}", LayoutWarning, stacklevel=2)
        if self.echo:
            # Also print to stderr for immediate visibility
            print(f"LAYOUT WARNING: {record}", file=sys.stderr)
        return record

    def subjects(self) -> List[str]:
        return [record.subject for record in self.records]

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self):
        return iter(self.records)
