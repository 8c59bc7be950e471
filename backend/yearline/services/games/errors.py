"""Rejection taxonomy for game commands.

Every ``GameError`` is raised before any state is mutated, so a rejected
command leaves the game exactly as it was. ``InvariantViolation`` is not a
rejection: it means stored state is inconsistent and surfaces as a 500.
"""


class GameError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(GameError):
    status_code = 404


class AuthorizationError(GameError):
    status_code = 403


class NotAuthenticated(AuthorizationError):
    status_code = 401

    def __init__(self, message: str = 'Not authenticated'):
        super().__init__(message)


class PhaseError(GameError):
    status_code = 409


class ResourceError(GameError):
    status_code = 400


class InvariantViolation(RuntimeError):
    pass
