from __future__ import annotations

from typing import Iterable


class DomainError(Exception):
    """Base exception for business rule violations."""


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""


class IncompleteSessionError(ValidationError):
    """Raised when a roll-call is submitted with students still unset."""

    def __init__(self, missing_student_ids: Iterable[str]):
        self.missing_student_ids = sorted(missing_student_ids)
        super().__init__(
            f"Chamada incompleta: {len(self.missing_student_ids)} aluno(s) sem marcação "
            f"({', '.join(self.missing_student_ids)})"
        )


class AuthorizationError(DomainError):
    """Raised when a user lacks permission for an action."""


class SchemaError(DomainError):
    """Raised when a remote row does not match the expected shape."""


class SyncError(DomainError):
    """Base class for failures talking to the remote store."""


class TransientSyncError(SyncError):
    """Network/timeout style failure. Safe to retry."""


class PermanentSyncError(SyncError):
    """The remote store rejected the write as structurally invalid."""


class NotificationError(DomainError):
    """Raised when the push provider rejects a notification."""
