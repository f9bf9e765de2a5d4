"""
Exception hierarchy for complaint handling.

Each error carries the message shown to the user and the HTTP status
code the API answers with.
"""


class FixifyError(Exception):
    """Base class for all errors reported back to the caller"""

    status_code = 400

    def __init__(self, message, status_code=None, details=None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self):
        payload = {'error': self.message}
        payload.update(self.details)
        return payload


class ValidationError(FixifyError):
    """Bad user input: missing required field or malformed value"""

    status_code = 400


class MissingEvidenceError(FixifyError):
    """Resolution attempted without an evidence image"""

    status_code = 400


class InvalidStateError(FixifyError):
    """Transition, assignment or feedback attempted from the wrong status"""

    status_code = 409


class DuplicateFeedbackError(InvalidStateError):
    """Feedback already exists for the complaint"""


class ConfirmationRequiredError(FixifyError):
    """Closing a complaint as incomplete needs an explicit second confirmation"""

    status_code = 409

    def __init__(self, message, **kwargs):
        super().__init__(message, details={'confirmation_required': True}, **kwargs)


class PermissionDeniedError(FixifyError):
    """Actor is not allowed to act on this complaint"""

    status_code = 403


class RemoteOperationError(FixifyError):
    """Database or storage failure, passed through to the caller"""

    status_code = 502
