"""
Error Taxonomy Module

Structured failures raised by the ledger core. Every error carries a
machine-readable kind plus the identifiers it concerns, so the HTTP
gateway can map it to a status code without parsing messages.
"""

from typing import Any, Dict, Optional


class BankError(Exception):
    """Base class for all ledger core errors"""

    kind = "BankError"

    def __init__(self, message: str, identifiers: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.identifiers = {k: str(v) for k, v in (identifiers or {}).items()}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for API responses and logs"""
        return {
            "kind": self.kind,
            "detail": self.message,
            "identifiers": self.identifiers
        }


class InvalidAmountFormat(BankError, ValueError):
    """A value cannot be represented as a monetary Amount"""
    kind = "InvalidAmountFormat"


class InsufficientFunds(BankError, ValueError):
    """A debit would take the balance below zero"""
    kind = "InsufficientFunds"


class NotAuthorized(BankError, PermissionError):
    """The acting client lacks the required access to an account"""
    kind = "NotAuthorized"


class NotFound(BankError, LookupError):
    """Account or client does not exist (or is not visible to the caller)"""
    kind = "NotFound"


class DuplicateUsername(BankError, ValueError):
    """A client with the same username already exists"""
    kind = "DuplicateUsername"


class DuplicateAccess(BankError, ValueError):
    """The client already holds a role on the account"""
    kind = "DuplicateAccess"


class InvalidBirthDate(BankError, ValueError):
    """Birth date lies in the future or is implausibly old"""
    kind = "InvalidBirthDate"


class DomainInvariantViolation(BankError, ValueError):
    """Generic rule violation: pre-assigned ids, contradictory queries, etc."""
    kind = "DomainInvariantViolation"
