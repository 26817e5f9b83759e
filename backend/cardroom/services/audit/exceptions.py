"""Audit publication exceptions."""


class AuditError(Exception):
    """Base audit exception."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class AuditPublishError(AuditError):
    """The audit endpoint rejected or never received a fact."""

    pass
