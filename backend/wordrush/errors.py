"""Error taxonomy shared by services and HTTP handlers."""


class GameError(Exception):
    status_code = 500
    default_message = 'Internal error'

    def __init__(self, message=None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    def to_dict(self):
        return {'message': self.message}


class ValidationError(GameError):
    """Malformed input or an illegal state transition."""
    status_code = 400
    default_message = 'Invalid request'


class Unauthorized(GameError):
    status_code = 401
    default_message = 'Missing or invalid player token'


class Forbidden(GameError):
    status_code = 403
    default_message = 'Not allowed'


class NotFound(GameError):
    status_code = 404
    default_message = 'Not found'


class Conflict(GameError):
    status_code = 409
    default_message = 'Conflict'


class InternalError(GameError):
    """Store failure."""
    status_code = 500
