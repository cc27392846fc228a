# Progression Engine
#
# Decides how target weights move after a completed session.
#
# Architecture:
# - types: immutable records the engine reads and returns
# - deload_strategies: closed set of weight-reduction variants
# - resolver: success/failure judgement and new progression state
#
# The engine is pure. Loading rows and writing results is the job of
# services.session_completion.

from .constants import DeloadStrategy, SetStatus, SessionStatus, OPEN_SESSION_STATUSES
from .types import (
    PlannedSet,
    PlannedExercise,
    PerformedSet,
    ExerciseProgression,
    ProgressionResolution,
)
from .deload_strategies import (
    ProportionalDeload,
    ReferenceSetDeload,
    CustomDeload,
    deload_strategy_for,
)
from .resolver import resolve_progressions

__all__ = [
    # Records
    'PlannedSet',
    'PlannedExercise',
    'PerformedSet',
    'ExerciseProgression',
    'ProgressionResolution',

    # Deload
    'ProportionalDeload',
    'ReferenceSetDeload',
    'CustomDeload',
    'deload_strategy_for',

    # Resolver
    'resolve_progressions',

    # Constants
    'DeloadStrategy',
    'SetStatus',
    'SessionStatus',
    'OPEN_SESSION_STATUSES',
]
