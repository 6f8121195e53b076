"""Per-submission write journal.

A submission performs several sequential writes (darts, step run, routine
score, run completion, calendar status, post-processing). The journal records
which of them are durable so that retrying a failed submission resumes where
it stopped instead of writing a dart twice or counting a checkout success
twice.

A journal is bound to one submission key: the position in the session plus
the exact visit being submitted. It is discarded when the submission
completes.
"""

from __future__ import annotations

from dataclasses import dataclass

# (path, routine_index, step_index, attempt_index or visit_no, visit)
SubmissionKey = tuple[str, int, int, int, tuple[str, ...]]


@dataclass(slots=True)
class SubmissionJournal:
    key: SubmissionKey

    darts_written: int = 0
    step_run_updated: bool = False
    cum_successes: int | None = None
    round_reported: bool = False

    routine_scored: bool = False
    run_completed: bool = False
    calendar_updated: bool = False
    post_processed: bool = False

    @property
    def has_durable_writes(self) -> bool:
        """True once any write of this submission has been persisted."""
        return self.darts_written > 0 or self.step_run_updated

    def matches(self, key: SubmissionKey) -> bool:
        return self.key == key


def submission_key(
    path: str,
    routine_index: int,
    step_index: int,
    sub_index: int,
    visit: tuple[str, ...],
) -> SubmissionKey:
    """Build the key identifying one submission of one visit."""
    return (path, routine_index, step_index, sub_index, tuple(visit))
