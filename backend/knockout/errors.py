"""Error kinds raised by the game services.

Services raise these synchronously; the application factory registers a
handler that renders them as ``{'error': message}`` with ``status_code``.
"""


class KnockoutError(Exception):
    """Base class for rejected operations."""
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(KnockoutError):
    """Referenced game, round, league or player does not exist."""
    status_code = 404


class InvalidState(KnockoutError):
    """Operation attempted against a record in an incompatible status."""
    status_code = 409


class ValidationError(KnockoutError):
    """Missing or invalid input, e.g. mode config or too few players."""
    status_code = 400


class Unauthenticated(KnockoutError):
    """No caller identity for an operation that needs attribution."""
    status_code = 401
