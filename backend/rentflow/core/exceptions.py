"""Domain errors raised by the commission services.

Routes never catch these one by one; ``rentflow.main`` registers a single
handler that turns them into ``{"detail": message}`` responses.
"""


class CommissionEngineError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(CommissionEngineError):
    """A referenced rule, transaction or commission does not exist."""
    status_code = 404


class ConflictError(CommissionEngineError):
    """An active rule already covers the action type."""
    status_code = 400


class InvalidStateError(CommissionEngineError):
    """A commission is asked to leave a terminal state."""
    status_code = 400


class RuleValidationError(CommissionEngineError):
    """A rule update would leave min_amount above max_amount."""
    status_code = 400
