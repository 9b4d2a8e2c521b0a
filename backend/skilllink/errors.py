from typing import Optional


class SkillLinkError(Exception):
    """Base class for errors that are surfaced to the user as a notice."""


class AuthError(SkillLinkError):
    def __init__(self, message: str, code: str = "auth_error", status: Optional[int] = None):
        super().__init__(message)
        self.code = code
        self.status = status


class FetchError(SkillLinkError):
    pass


class ProviderNotFoundError(FetchError):
    pass


class NotifyError(SkillLinkError):
    pass


class PaymentError(SkillLinkError):
    pass


class FlowNotFoundError(SkillLinkError):
    pass


class FlowStateError(SkillLinkError):
    pass


class PermissionDeniedError(SkillLinkError):
    pass


class BackendError(Exception):
    """Transport or protocol failure talking to the hosted backend."""


class BackendTimeoutError(BackendError):
    pass


class BackendUnavailableError(BackendError):
    pass


class BackendResponseError(BackendError):
    def __init__(self, status: int, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.status = status
        self.code = code


class RecordNotFoundError(BackendResponseError):
    pass
