class CutflowError(Exception):
    """Base class for domain errors; ``main`` maps them to JSON responses."""

    status_code = 400

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class NotFoundError(CutflowError):
    status_code = 404


class PermissionDeniedError(CutflowError):
    status_code = 403


class TransitionError(CutflowError):
    pass


class ConcurrentUpdateError(CutflowError):
    status_code = 409


class InsufficientBalanceError(CutflowError):
    pass


class ApplicationError(CutflowError):
    pass


class PaymentError(CutflowError):
    pass
