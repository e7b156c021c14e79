"""Shared domain error messages and error types."""

from typing import Any, Optional


class ErrorCode:
    """Structured error codes reported at the action boundary."""

    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    ALREADY_EXISTS = "ALREADY_EXISTS"
    DATABASE_ERROR = "DATABASE_ERROR"
    INVALID_OPERATION = "INVALID_OPERATION"
    INSUFFICIENT_PERMISSIONS = "INSUFFICIENT_PERMISSIONS"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class DomainError(ValueError):
    """Base class for domain-level errors.

    Subclasses provide semantic categories while preserving ValueError
    compatibility for existing error handling. Each category maps to one
    error code so the action boundary can translate it without inspecting
    the message.
    """

    code = ErrorCode.INTERNAL_ERROR

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(DomainError):
    """Invalid input or failed validation in domain logic."""

    code = ErrorCode.VALIDATION_ERROR


class NotFoundError(DomainError):
    """Requested domain entity does not exist."""

    code = ErrorCode.NOT_FOUND


class ConflictError(DomainError):
    """Domain conflict, such as uniqueness violations."""

    code = ErrorCode.ALREADY_EXISTS


class DependencyError(DomainError):
    """Operation blocked due to dependent domain data."""

    code = ErrorCode.INVALID_OPERATION


class AuthenticationError(DomainError):
    """No authenticated user is available."""

    code = ErrorCode.UNAUTHORIZED


class PermissionDeniedError(DomainError):
    """The user is not a member of the organization."""

    code = ErrorCode.FORBIDDEN


class InsufficientRoleError(PermissionDeniedError):
    """The user is a member, but their role does not allow the operation."""

    code = ErrorCode.INSUFFICIENT_PERMISSIONS


class InvalidOperationError(DomainError):
    """Operation is not allowed in the current state."""

    code = ErrorCode.INVALID_OPERATION


class StorageError(DomainError):
    """A storage call failed as a whole (bulk insert, update)."""

    code = ErrorCode.DATABASE_ERROR


def account_not_found(account_id: int) -> str:
    """Return message for missing account."""
    return f"Account {account_id} not found"


def import_not_found(import_id: int) -> str:
    """Return message for missing import history."""
    return f"Import history {import_id} not found"


def template_not_found(template_id: int) -> str:
    """Return message for missing CSV template."""
    return f"CSV template {template_id} not found"


def rule_not_found(rule_id: int) -> str:
    """Return message for missing import rule."""
    return f"Import rule {rule_id} not found"


def journal_entry_not_found(entry_id: int) -> str:
    """Return message for missing journal entry."""
    return f"Journal entry {entry_id} not found"


def not_a_member(organization_id: int) -> str:
    """Return message when the user has no membership in the organization."""
    return f"You do not have permission to access organization {organization_id}."


def role_not_allowed(role: str, allowed: tuple[str, ...]) -> str:
    """Return message when the membership role is too weak."""
    return f"Role '{role}' cannot perform this operation (requires one of: {', '.join(allowed)})."
