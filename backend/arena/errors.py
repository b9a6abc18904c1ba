"""Error taxonomy for battle sessions.

Every rejection raised by a session operation is a :class:`GameError`. The
HTTP layer maps ``status`` onto the response; nothing is mutated before one
of these is raised.
"""


class GameError(Exception):
    kind = 'error'
    status = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {'error': self.message, 'kind': self.kind}


class SessionNotFound(GameError):
    kind = 'not_found'
    status = 404


class InvalidInput(GameError):
    kind = 'invalid_input'
    status = 400


class WrongPhase(GameError):
    kind = 'wrong_phase'
    status = 409


class SessionFull(GameError):
    kind = 'full'
    status = 409


class OracleError(GameError):
    """Scoring call failed. Recovered internally, never shown to players."""
    kind = 'oracle_failure'
    status = 502


class CodeSpaceExhausted(GameError):
    kind = 'internal'
    status = 500
