class SessionError(Exception):
    """Base class for rejected session operations.

    Rejections are local: the operation is aborted before anything is
    written, and the caller decides how to surface the message.
    """
    status_code = 400
    kind = 'session_error'

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self):
        return {'error': self.message, 'code': self.kind}


class NotFound(SessionError):
    status_code = 404
    kind = 'not_found'


class InvalidTransition(SessionError):
    status_code = 409
    kind = 'invalid_transition'


class AnswerWindowClosed(InvalidTransition):
    kind = 'answer_window_closed'


class DuplicateSubmission(SessionError):
    status_code = 409
    kind = 'duplicate_submission'


class PermissionDenied(SessionError):
    status_code = 403
    kind = 'permission_denied'


class KickedPlayer(PermissionDenied):
    kind = 'kicked'


class InvalidAnswer(SessionError):
    status_code = 400
    kind = 'invalid_answer'


class ValidationFailed(SessionError):
    status_code = 400
    kind = 'validation_failed'
