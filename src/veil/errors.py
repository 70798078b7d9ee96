"""
Exception hierarchy for Veil.

All Veil exceptions inherit from VeilError, allowing callers to catch
all Veil-specific exceptions with a single except clause.

Exception Categories:
    - UnknownHandleError / KindMismatchError: the calling code is malformed
    - PermissionDeniedError: a handle lacks an explicit grant
    - InvalidProofError: external input failed well-formedness checks
    - BackendError: backend discovery or reveal failures
    - StorageError: audit database operation failed
    - ScenarioValidationError / ReplayError: scenario files and replays

Numeric overflow, division by zero, out-of-range casts and a zero bound for
bounded randomness are never errors. They produce a defined result instead.
"""

from dataclasses import dataclass, field
from typing import Any


# =============================================================================
# Error Codes
# =============================================================================

# Handle and kind errors: 1xxx
ERROR_UNKNOWN_HANDLE = 1001
ERROR_KIND_MISMATCH = 1002
ERROR_UNKNOWN_OPERATION = 1003

# Permission errors: 2xxx
ERROR_PERMISSION_DENIED = 2001
ERROR_REVEAL_DENIED = 2002

# Input errors: 3xxx
ERROR_INVALID_PROOF = 3001

# Backend errors: 4xxx
ERROR_BACKEND_NOT_FOUND = 4001
ERROR_REVEAL_UNAVAILABLE = 4002

# Storage errors: 5xxx
ERROR_STORAGE_CONNECTION = 5001
ERROR_STORAGE_WRITE = 5002
ERROR_STORAGE_READ = 5003

# Scenario and replay errors: 6xxx
ERROR_SCENARIO_INVALID = 6001
ERROR_REPLAY_RUN_NOT_FOUND = 6002
ERROR_REPLAY_MISMATCH = 6003


# =============================================================================
# Base Exception
# =============================================================================


@dataclass
class VeilError(Exception):
    """
    Base exception for all Veil errors.

    Attributes:
        message: Human-readable error description
        code: Numeric error code for programmatic handling
        suggestion: Optional hint for how to resolve the error
        context: Optional dict with additional debugging info
    """

    message: str = ""
    code: int = 0
    suggestion: str | None = None
    context: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        """Format error for display."""
        parts = [f"[E{self.code}] {self.message}"]
        if self.suggestion:
            parts.append(f"\nSuggestion: {self.suggestion}")
        return "".join(parts)

    def __repr__(self) -> str:
        """Format error for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code}, "
            f"context={self.context!r})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "suggestion": self.suggestion,
            "context": self.context,
        }


# =============================================================================
# Handle and Kind Errors
# =============================================================================


@dataclass
class UnknownHandleError(VeilError):
    """
    Raised when a handle was never created by the registry being asked.

    This is a programmer or integration error and should never be
    recovered from silently.
    """

    handle: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Unknown handle: {self.handle}"
        if self.code == 0:
            self.code = ERROR_UNKNOWN_HANDLE
        if not self.suggestion:
            self.suggestion = "Handles are only valid inside the session that created them"
        self.context["handle"] = self.handle


@dataclass
class KindMismatchError(VeilError):
    """Raised when operand kinds are incompatible with the requested operation."""

    operation: str = ""
    expected: str = ""
    actual: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = (
                f"Kind mismatch in {self.operation}: expected {self.expected}, got {self.actual}"
            )
        if self.code == 0:
            self.code = ERROR_KIND_MISMATCH
        if not self.suggestion:
            self.suggestion = "Use cast() to convert the operand to the required kind"
        self.context.update({
            "operation": self.operation,
            "expected": self.expected,
            "actual": self.actual,
        })


@dataclass
class UnknownOperationError(VeilError):
    """Raised when an operation name is not registered in the operation table."""

    operation: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Unknown operation: {self.operation}"
        if self.code == 0:
            self.code = ERROR_UNKNOWN_OPERATION
        if not self.suggestion:
            self.suggestion = "Run 'veil ops' to list the registered operations"
        self.context["operation"] = self.operation


# =============================================================================
# Permission Errors
# =============================================================================


@dataclass
class PermissionDeniedError(VeilError):
    """
    Raised when a handle is used without the required grant.

    Recoverable: the caller should grant and retry. The denial never
    carries information about the protected value.

    Attributes:
        handle: Display form of the handle that was refused
        principal: Principal the check was made for
        reason: Why the ledger refused
        rule: Which ledger rule produced the decision
    """

    handle: str = ""
    principal: str = ""
    reason: str = ""
    rule: str | None = None

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Permission denied on {self.handle} for {self.principal}: {self.reason}"
        if self.code == 0:
            self.code = ERROR_PERMISSION_DENIED
        if not self.suggestion:
            self.suggestion = "Call grant_self() on handles you intend to reuse in later transactions"
        self.context.update({
            "handle": self.handle,
            "principal": self.principal,
            "reason": self.reason,
            "rule": self.rule,
        })


@dataclass
class RevealDeniedError(PermissionDeniedError):
    """Raised when a principal asks to reveal a handle it was never granted."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if self.code == 0:
            self.code = ERROR_REVEAL_DENIED
        if not self.suggestion:
            self.suggestion = "Call grant_to(handle, principal) before revealing"
        super().__post_init__()


# =============================================================================
# Input Errors
# =============================================================================


@dataclass
class InvalidProofError(VeilError):
    """Raised when an external input does not carry a valid proof."""

    claimed_kind: str = ""
    reason: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Invalid input proof for {self.claimed_kind}: {self.reason}"
        if self.code == 0:
            self.code = ERROR_INVALID_PROOF
        self.context.update({
            "claimed_kind": self.claimed_kind,
            "reason": self.reason,
        })


# =============================================================================
# Backend Errors
# =============================================================================


@dataclass
class BackendError(VeilError):
    """Base class for backend errors."""

    backend: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        self.context["backend"] = self.backend


@dataclass
class BackendNotFoundError(BackendError):
    """Raised when no backend is registered for a network identifier."""

    network: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"No backend registered for network: {self.network}"
        if self.code == 0:
            self.code = ERROR_BACKEND_NOT_FOUND
        if not self.suggestion:
            self.suggestion = "Register a backend factory or pass backend= explicitly"
        super().__post_init__()
        self.context["network"] = self.network


@dataclass
class RevealUnavailableError(BackendError):
    """Raised when the reveal path fails transiently. Safe to retry."""

    handle: str = ""
    attempts: int = 0

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Reveal unavailable for {self.handle}"
        if self.code == 0:
            self.code = ERROR_REVEAL_UNAVAILABLE
        if not self.suggestion:
            self.suggestion = "Retry later or increase reveal_retries in config"
        super().__post_init__()
        self.context.update({
            "handle": self.handle,
            "attempts": self.attempts,
        })


# =============================================================================
# Storage Errors
# =============================================================================


@dataclass
class StorageError(VeilError):
    """
    Base class for audit database errors.

    Attributes:
        operation: The operation that failed (e.g., "insert", "query")
    """

    operation: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        self.context["operation"] = self.operation


@dataclass
class StorageConnectionError(StorageError):
    """Raised when database connection fails."""

    db_path: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Failed to connect to database: {self.db_path}"
        if self.code == 0:
            self.code = ERROR_STORAGE_CONNECTION
        if not self.suggestion:
            self.suggestion = "Check that the database path is valid and writable"
        super().__post_init__()
        self.context["db_path"] = self.db_path


@dataclass
class StorageWriteError(StorageError):
    """Raised when a write operation fails."""

    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Database write failed: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_STORAGE_WRITE
        super().__post_init__()
        self.context["underlying_error"] = self.underlying_error


@dataclass
class StorageReadError(StorageError):
    """Raised when a read operation fails."""

    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Database read failed: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_STORAGE_READ
        super().__post_init__()
        self.context["underlying_error"] = self.underlying_error


# =============================================================================
# Scenario and Replay Errors
# =============================================================================


@dataclass
class ScenarioValidationError(VeilError):
    """
    Raised when a scenario fails validation before or during execution.

    Attributes:
        step_index: Index of the invalid step (if applicable)
    """

    step_index: int | None = None

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if self.code == 0:
            self.code = ERROR_SCENARIO_INVALID
        self.context["step_index"] = self.step_index


@dataclass
class ReplayError(VeilError):
    """Base class for replay errors."""

    run_id: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        self.context["run_id"] = self.run_id


@dataclass
class ReplayRunNotFoundError(ReplayError):
    """Raised when the run to replay doesn't exist."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Run not found: {self.run_id}"
        if self.code == 0:
            self.code = ERROR_REPLAY_RUN_NOT_FOUND
        super().__post_init__()


@dataclass
class ReplayMismatchError(ReplayError):
    """Raised when a replayed step produces a different outcome."""

    step_index: int = 0
    expected_hash: str = ""
    actual_hash: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = (
                f"Replay diverged at step {self.step_index}: "
                f"expected {self.expected_hash[:8]}..., got {self.actual_hash[:8]}..."
            )
        if self.code == 0:
            self.code = ERROR_REPLAY_MISMATCH
        super().__post_init__()
        self.context.update({
            "step_index": self.step_index,
            "expected_hash": self.expected_hash,
            "actual_hash": self.actual_hash,
        })
