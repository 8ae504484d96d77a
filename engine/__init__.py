"""Session state and turn execution for the interview engine."""
from .state import PhaseResult, SessionSetup, SessionState, TopicBudget, TurnInput, TurnResult

__all__ = ["PhaseResult", "SessionSetup", "SessionState", "TopicBudget", "TurnInput", "TurnResult"]
