"""
Error taxonomy for Equation Poker.

Every rejected request is one of these. Handlers turn them into a single
targeted error message (WebSocket) or an HTTP error (REST); none of them
ever escapes as an unhandled process-level failure.
"""


class GameError(Exception):
    """Base class for all rejected game requests."""

    code = "game_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


class NotFound(GameError):
    """A session or player id does not resolve."""

    code = "not_found"


class InvalidAction(GameError):
    """Action illegal for the current phase, actor or turn."""

    code = "invalid_action"


class InsufficientChips(GameError):
    """Bet or call exceeds the available or permitted balance."""

    code = "insufficient_chips"


class MalformedEquation(GameError):
    """
    Equation fails the grammar or evaluates to a non-finite value.

    Raised only inside the evaluator; submissions carrying a malformed
    equation are still accepted and simply score as no valid result.
    """

    code = "malformed_equation"


class DeckExhausted(GameError):
    """
    Dealing could not satisfy demand.

    The fixed deck is sufficient for the table size limit, so this marks
    an internal defect and is fatal to the session it happens in.
    """

    code = "deck_exhausted"


class InternalError(GameError):
    """
    A mutation failed on an unexpected exception.

    The mutation is rolled back before this is raised, so the session is
    left exactly as it was.
    """

    code = "internal_error"
