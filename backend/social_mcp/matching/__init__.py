"""Match scoring, creation and the consent lifecycle."""

from .engine import MatchEngine, MatchPassResult
from .lifecycle import MatchLifecycle, MatchResponse, ResponseOutcome
from .scorer import CategoryScorer, FallbackScorer, build_scorer

__all__ = [
    "MatchEngine", "MatchPassResult", "MatchLifecycle", "MatchResponse",
    "ResponseOutcome", "CategoryScorer", "FallbackScorer", "build_scorer",
]
