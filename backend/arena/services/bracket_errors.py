"""Bracket service errors. Routes map status_code onto the HTTP response."""


class BracketError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class BracketValidationError(BracketError):
    """Bad input: negative score, too few teams, unsupported format."""


class BracketStateError(BracketError):
    """Operation not allowed in the current tournament/stage/match state."""


class BracketNotFoundError(BracketError):
    status_code = 404


class SlotConflictError(BracketStateError):
    """A downstream slot changed underneath a concurrent writer."""

    status_code = 409
