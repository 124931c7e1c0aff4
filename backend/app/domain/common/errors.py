"""Domain error types.

Every error carries a machine-readable ``code`` and a ``category``; the API
layer maps the category to an HTTP status and renders
``{"success": false, "error": {"code", "message", "category"}}``.
"""
from typing import Optional


class ErrorCategory:
    """Error categories (and the HTTP status each maps to in app.main)."""
    VALIDATION = "validation"
    AUTHENTICATION = "authentication"
    AUTHORIZATION = "authorization"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    INTEGRATION = "integration"
    SERVER = "server"


class DomainError(Exception):
    """Base domain error."""

    code = "DOMAIN_ERROR"
    category = ErrorCategory.SERVER

    def __init__(self, message: str, code: Optional[str] = None):
        self.message = message
        if code is not None:
            self.code = code
        super().__init__(message)


class NotFoundError(DomainError):
    """Resource not found."""

    code = "NOT_FOUND"
    category = ErrorCategory.NOT_FOUND

    def __init__(self, resource: str, identifier: str):
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} with id {identifier} not found")


class ValidationError(DomainError):
    """Validation error."""

    code = "VALIDATION_ERROR"
    category = ErrorCategory.VALIDATION


class AuthenticationError(DomainError):
    """Missing or invalid credentials."""

    code = "UNAUTHENTICATED"
    category = ErrorCategory.AUTHENTICATION


class AuthorizationError(DomainError):
    """Authorization error."""

    code = "FORBIDDEN"
    category = ErrorCategory.AUTHORIZATION

    def __init__(self, message: str = "Not authorized", code: Optional[str] = None):
        super().__init__(message, code)


class ConflictError(DomainError):
    """Resource conflict error."""

    code = "CONFLICT"
    category = ErrorCategory.CONFLICT


class IntegrationError(DomainError):
    """A collaborator (payment gateway, ledger relay) failed."""

    code = "INTEGRATION_ERROR"
    category = ErrorCategory.INTEGRATION

    def __init__(self, service: str, message: str):
        self.service = service
        super().__init__(f"{service}: {message}")


class TargetingErrorCode:
    CANNOT_TARGET_OWN_SWAP = "CANNOT_TARGET_OWN_SWAP"
    AUCTION_ENDED = "AUCTION_ENDED"
    PROPOSAL_PENDING = "PROPOSAL_PENDING"
    CIRCULAR_TARGETING = "CIRCULAR_TARGETING"
    ALREADY_TARGETED = "ALREADY_TARGETED"
    SWAP_NOT_FOUND = "SWAP_NOT_FOUND"
    TARGET_SWAP_UNAVAILABLE = "TARGET_SWAP_UNAVAILABLE"
    SOURCE_SWAP_UNAVAILABLE = "SOURCE_SWAP_UNAVAILABLE"
    CONCURRENT_TARGETING = "CONCURRENT_TARGETING"
    NO_ACTIVE_TARGET = "NO_ACTIVE_TARGET"
    PAYMENT_TYPE_NOT_ACCEPTED = "PAYMENT_TYPE_NOT_ACCEPTED"
    CASH_OFFER_BELOW_MINIMUM = "CASH_OFFER_BELOW_MINIMUM"


_TARGETING_CATEGORIES = {
    TargetingErrorCode.CANNOT_TARGET_OWN_SWAP: ErrorCategory.VALIDATION,
    TargetingErrorCode.PAYMENT_TYPE_NOT_ACCEPTED: ErrorCategory.VALIDATION,
    TargetingErrorCode.CASH_OFFER_BELOW_MINIMUM: ErrorCategory.VALIDATION,
    TargetingErrorCode.SWAP_NOT_FOUND: ErrorCategory.NOT_FOUND,
}

_TARGETING_MESSAGES = {
    TargetingErrorCode.CANNOT_TARGET_OWN_SWAP: "Cannot target your own swap",
    TargetingErrorCode.AUCTION_ENDED: "The auction for this swap has ended",
    TargetingErrorCode.PROPOSAL_PENDING: "This swap already has a pending proposal",
    TargetingErrorCode.CIRCULAR_TARGETING: "Targeting would create a cycle",
    TargetingErrorCode.ALREADY_TARGETED: "Your swap is already targeting this swap",
    TargetingErrorCode.SWAP_NOT_FOUND: "Swap not found",
    TargetingErrorCode.TARGET_SWAP_UNAVAILABLE: "Target swap is no longer available",
    TargetingErrorCode.SOURCE_SWAP_UNAVAILABLE: "Your swap is no longer available",
    TargetingErrorCode.CONCURRENT_TARGETING: "Another targeting change for this swap won the race; retry",
    TargetingErrorCode.NO_ACTIVE_TARGET: "Your swap is not targeting any swap",
    TargetingErrorCode.PAYMENT_TYPE_NOT_ACCEPTED: "The target swap does not accept this proposal type",
    TargetingErrorCode.CASH_OFFER_BELOW_MINIMUM: "Cash offer is below the minimum amount",
}


class TargetingError(DomainError):
    """A targeting rule rejected the operation."""

    def __init__(self, code: str, message: Optional[str] = None):
        self.category = _TARGETING_CATEGORIES.get(code, ErrorCategory.CONFLICT)
        super().__init__(message or _TARGETING_MESSAGES.get(code, code), code)


def default_targeting_message(code: str) -> str:
    return _TARGETING_MESSAGES.get(code, code)
