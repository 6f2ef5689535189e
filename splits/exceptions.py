"""
Exceptions raised by the splits service layer.

Views map each group to a status code: validation errors to 400,
precondition violations to 409, authorization to 403 (401 for a missing
identity), missing records to 404.
"""


class SplitsServiceError(Exception):
    """Base class for all splits service errors"""
    pass


# Validation

class InvalidShareCodeError(SplitsServiceError):
    """Share code is not six ASCII digits"""
    pass


class ItemNotFoundError(SplitsServiceError):
    """Item key does not exist on the receipt"""
    pass


# Preconditions

class PreconditionViolation(SplitsServiceError):
    pass


class ClaimsLockedError(PreconditionViolation):
    """Participant has submitted; their claims can't change"""
    pass


class AlreadyFinalizedError(PreconditionViolation):
    pass


class NotFinalizedError(PreconditionViolation):
    pass


class UnclaimedItemsError(PreconditionViolation):
    pass


class MissingPaymentOptionsError(PreconditionViolation):
    pass


class NoParticipantsError(PreconditionViolation):
    pass


class ParticipantsNotSubmittedError(PreconditionViolation):
    pass


class NoPaymentDueError(PreconditionViolation):
    pass


class ReceiptArchivedError(PreconditionViolation):
    pass


class HostPaymentIntentError(PreconditionViolation):
    """The host doesn't pay themselves"""
    pass


# Authorization

class AuthorizationError(SplitsServiceError):
    pass


class HostOnlyActionError(AuthorizationError):
    pass


class CannotRemoveHostError(AuthorizationError):
    pass


class AuthenticationRequiredError(AuthorizationError):
    pass


# Not found

class NotFoundError(SplitsServiceError):
    pass


class ReceiptNotFoundError(NotFoundError):
    pass


class ParticipantNotFoundError(NotFoundError):
    pass


class CodeGenerationExhaustedError(SplitsServiceError):
    """Could not find an unused share code within the attempt budget"""
    pass
