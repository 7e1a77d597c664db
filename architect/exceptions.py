"""
Custom exceptions for the Architect backend.
"""

from decimal import Decimal
from typing import Any


class ArchitectError(Exception):
    """Base exception for the application."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


# === Lookup Exceptions ===
# Ownership failures use these too, so callers can't fish for other users' ids.

class NotFoundError(ArchitectError):
    """Raised when a resource is missing or not owned by the caller."""

    resource = "Resource"

    def __init__(self, identifier: Any):
        super().__init__(
            message=f"{self.resource} not found: {identifier}",
            details={"identifier": str(identifier)},
        )


class AccountNotFoundError(NotFoundError):
    resource = "Account"


class ProjectNotFoundError(NotFoundError):
    resource = "Project"


class ConversationNotFoundError(NotFoundError):
    resource = "Conversation"


class SuiteNotFoundError(NotFoundError):
    resource = "Blueprint suite"


class SequenceNotFoundError(NotFoundError):
    resource = "Prompt sequence"


class PromptNotFoundError(NotFoundError):
    resource = "Prompt"


class AccountAlreadyExistsError(ArchitectError):
    """Raised when trying to register an existing account."""

    def __init__(self, user_id: Any):
        super().__init__(
            message=f"Account already registered: {user_id}",
            details={"user_id": str(user_id)},
        )


# === Credit Exceptions ===

class InsufficientCreditsError(ArchitectError):
    """Raised when an account can't cover the cost of an operation."""

    def __init__(self, required: Decimal, available: Decimal, user_id: Any):
        super().__init__(
            message=(
                f"Insufficient credits. You have {available:.1f} credits "
                f"but this action costs {required} credits."
            ),
            details={
                "required": str(required),
                "available": str(available),
                "user_id": str(user_id),
            },
        )
        self.required = required
        self.available = available


class InvalidCreditOperationError(ArchitectError):
    """Raised when a credit amount is not positive."""
    pass


# === Validation Exceptions ===

class InvalidInputError(ArchitectError):
    """Raised when required input is missing or malformed."""
    pass


class ConversationNotReadyError(InvalidInputError):
    """Raised when blueprints are requested before the interview is complete."""

    def __init__(self, conversation_id: Any):
        super().__init__(
            message="Conversation is not ready for blueprint generation",
            details={"conversation_id": str(conversation_id)},
        )


class SuiteNotCompleteError(InvalidInputError):
    """Raised when prompts are requested for a suite that isn't complete."""

    def __init__(self, suite_id: Any, status: str):
        super().__init__(
            message="Blueprint suite must be complete before generating prompts",
            details={"suite_id": str(suite_id), "status": status},
        )


class InvalidStatusTransitionError(InvalidInputError):
    """Raised when a status change is not in the transition table."""

    def __init__(self, entity: str, current_status: str, requested_status: str):
        super().__init__(
            message=f"Invalid {entity} status change: {current_status} -> {requested_status}",
            details={
                "current_status": current_status,
                "requested_status": requested_status,
            },
        )


class PrerequisitesIncompleteError(InvalidInputError):
    """Raised when a prompt is started before its prerequisites are done."""

    def __init__(self, prompt_id: Any, incomplete: list[str]):
        super().__init__(
            message="Please complete or skip the prerequisite prompts first",
            details={
                "prompt_id": str(prompt_id),
                "incomplete_prerequisites": incomplete,
            },
        )


# === Generation Exceptions ===

class CompletionServiceError(ArchitectError):
    """Raised when a completion service request fails."""

    def __init__(self, message: str, original_error: Exception | None = None):
        super().__init__(
            message=message,
            details={"original_error": str(original_error) if original_error else None},
        )
        self.original_error = original_error


class ItemGenerationError(ArchitectError):
    """Raised when one batch item produces no usable output."""

    def __init__(self, item: str, reason: str):
        super().__init__(
            message=f"Generation failed for {item}: {reason}",
            details={"item": item, "reason": reason},
        )


class ResponseParseError(ArchitectError):
    """Raised when a structured assistant reply can't be parsed."""

    def __init__(self, reason: str, response: str | None = None):
        super().__init__(
            message=f"Unparseable assistant response: {reason}",
            details={"response_preview": (response or "")[:200]},
        )


# === Persistence Exceptions ===

class PersistenceError(ArchitectError):
    """Raised when a database write fails; aborts the current operation."""

    def __init__(self, operation: str, original_error: Exception | None = None):
        super().__init__(
            message=f"Database error during {operation}",
            details={"original_error": str(original_error) if original_error else None},
        )
        self.original_error = original_error
