"""Progress detectors for the loop.

Two orthogonal signals catch a stuck agent:

- the activity score tracks filesystem change (via git diff statistics);
- the output fingerprint tracks textual repetition.

An agent that rephrases without touching files, or churns files while
printing the same thing, trips one of the two.
"""

from __future__ import annotations

import hashlib
from collections.abc import Callable
from pathlib import Path

from codchestra.utils.git import DiffSummary, diff_summary

FINGERPRINT_LENGTH = 16


def activity_score(summary: DiffSummary | None) -> int:
    """Collapse diff statistics into one number.

    Returns 0 when no VCS data is available, which is indistinguishable from
    a clean tree.
    """
    if summary is None:
        return 0
    return 2 * summary.files_changed + summary.insertions + summary.deletions


class ChangeScorer:
    """Measures working-tree activity through a diff collaborator."""

    def __init__(self, diff_provider: Callable[[Path], DiffSummary | None] = diff_summary):
        self.diff_provider = diff_provider

    def score(self, workspace: Path) -> int:
        return activity_score(self.diff_provider(workspace))


def fingerprint(text: str) -> str:
    """Short SHA-256 digest of the full text, for equality checks only."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()[:FINGERPRINT_LENGTH]


class RepeatedOutputDetector:
    """Counts consecutive repeats of substantial agent output.

    A repeat of substantial output increments the counter. A repeat of
    trivial (near-empty) output decrements it, floored at zero, so a run of
    empty responses cannot trip the detector. Any different output resets it.
    """

    def __init__(
        self,
        threshold: int,
        min_substantial_chars: int,
        last_hash: str | None = None,
    ):
        self.threshold = threshold
        self.min_substantial_chars = min_substantial_chars
        self.last_hash = last_hash
        self.count = 0

    def reset(self, last_hash: str | None = None) -> None:
        """Start counting afresh, optionally against a previously seen digest."""
        self.last_hash = last_hash
        self.count = 0

    def is_substantial(self, output: str) -> bool:
        return len(output.strip()) >= self.min_substantial_chars

    def observe(self, output: str) -> bool:
        """Record one iteration's combined output.

        Returns:
            True when the repeat threshold is reached on substantial output
        """
        digest = fingerprint(output)
        substantial = self.is_substantial(output)

        if digest == self.last_hash:
            if substantial:
                self.count += 1
            else:
                self.count = max(0, self.count - 1)
        else:
            self.count = 0

        self.last_hash = digest
        return substantial and self.count >= self.threshold
