class AdaptLearnError(Exception):
    """Base class for errors raised by the adaptation core."""

    status_code = 400
    error_code = 'adaptlearn_error'

    def __init__(self, message, details=None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self):
        data = {
            'message': self.message,
            'error': self.error_code
        }
        if self.details:
            data['details'] = self.details
        return data


class InvalidDataError(AdaptLearnError):
    """A stored document or score failed write-time validation."""

    error_code = 'validation_error'


class RuleValidationError(InvalidDataError):
    """A rule, condition set or action set failed write-time validation."""


class NotFoundError(AdaptLearnError):
    status_code = 404
    error_code = 'not_found'


class NoEligiblePromptError(NotFoundError):
    """No active prompt matched the requested personality and context."""

    error_code = 'no_eligible_prompt'
