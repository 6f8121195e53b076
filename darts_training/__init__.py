"""Public API for the darts_training package.

Only symbols imported here are considered part of the stable,
supported external interface.
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

# ----------------------------------------------------------------------
# Session Orchestrator API
# ----------------------------------------------------------------------
from darts_training.core.config.engine_config import EngineConfig
from darts_training.core.domain.errors import (
    DataError,
    InvalidSegmentError,
    StartSessionError,
    SubmissionError,
    SubmissionInFlightError,
    TrainingSessionError,
)
from darts_training.core.domain.game_state import (
    EndedState,
    InvalidState,
    LoadingState,
    ReadyState,
    RunningState,
    SessionGameState,
)
from darts_training.core.ports.training_data import ProgressionService, TrainingDataService
from darts_training.session.orchestrator import SessionOrchestrator, SubmitVisitResult

# ----------------------------------------------------------------------
# Pure rules (usable without an orchestrator)
# ----------------------------------------------------------------------
from darts_training.core.domain.segments import (
    is_finishing_segment,
    normalize_segment,
    parse_segment,
    score_of,
)
from darts_training.core.rules.checkout import (
    compute_bust_reason,
    compute_remaining,
    is_early_finish,
)
from darts_training.core.scoring.normalizer import (
    checkout_routine_score,
    round_score,
    session_score,
    step_score,
)
from darts_training.core.speech.parser import parse_visit_from_transcript
from darts_training.core.speech.transcript_source import TranscriptSource

# ----------------------------------------------------------------------
# Public API definition
# ----------------------------------------------------------------------

__all__ = [
    # Orchestrator
    "SessionOrchestrator",
    "SubmitVisitResult",
    "EngineConfig",
    "TrainingDataService",
    "ProgressionService",
    "TranscriptSource",

    # State
    "SessionGameState",
    "LoadingState",
    "InvalidState",
    "ReadyState",
    "RunningState",
    "EndedState",

    # Errors
    "DataError",
    "InvalidSegmentError",
    "TrainingSessionError",
    "StartSessionError",
    "SubmissionError",
    "SubmissionInFlightError",

    # Rules
    "normalize_segment",
    "parse_segment",
    "score_of",
    "is_finishing_segment",
    "compute_remaining",
    "compute_bust_reason",
    "is_early_finish",
    "round_score",
    "step_score",
    "checkout_routine_score",
    "session_score",
    "parse_visit_from_transcript",

    # Version
    "__version__",
]

# ----------------------------------------------------------------------
# Package version
# ----------------------------------------------------------------------

try:
    __version__ = version("darts-training")
except PackageNotFoundError:
    __version__ = "0.0.0"
