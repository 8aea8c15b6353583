"""
Exceptions raised by the ante-post tournament engine.

Incomplete predictions are never an error: the engine returns empty or
partial results for those. These exceptions mark defective reference data,
invalid user input at the prediction boundary, and writes after submission.
"""


class AntePostError(Exception):
    """Base exception for all custom errors."""
    pass


class FixtureDataError(AntePostError, ValueError):
    """Raised when fixture or team reference data is malformed."""
    pass


class CombinationMatrixError(AntePostError, ValueError):
    """Raised when the round-of-32 combination table cannot be read."""
    pass


class PredictionValidationError(AntePostError, ValueError):
    """Raised when a prediction cannot describe a valid result."""
    def __init__(self, message: str, match_number: int = None):
        self.match_number = match_number
        if match_number is not None:
            message = f"Match {match_number}: {message}"
        super().__init__(message)


class PredictionsLockedError(AntePostError):
    """Raised when ante-post predictions change after final submission."""
    pass
