"""Error taxonomy and classification for failed lending requests."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ErrorKind(Enum):
    BENIGN_DUPLICATE = "benign_duplicate"
    INSUFFICIENT_RESOURCE = "insufficient_resource"
    VALIDATION_FAILURE = "validation_failure"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class Classification:
    """Outcome of classifying a failure."""

    kind: ErrorKind
    reason: str
    message: str
    logs: tuple[str, ...] = ()

    @property
    def is_benign(self) -> bool:
        return self.kind is ErrorKind.BENIGN_DUPLICATE


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class LendingClientError(Exception):
    """Base class for every error raised by this package."""


class ValidationError(LendingClientError):
    """Malformed input detected before or while building a request."""


class AddressDerivationError(ValidationError):
    """A seed could not be used to derive an address."""


class WalletRejectedError(ValidationError):
    """The wallet refused to sign a request."""


class AccountDecodeError(LendingClientError):
    """An account exists on chain but its data could not be decoded."""

    def __init__(self, address: str, detail: str) -> None:
        super().__init__(f"Could not decode account {address}: {detail}")
        self.address = address
        self.detail = detail


class RpcError(LendingClientError):
    """Transport failure talking to the ledger RPC endpoints."""


class TransactionError(LendingClientError):
    """The ledger rejected a submitted request."""

    def __init__(self, message: str, logs: list[str] | tuple[str, ...] | None = None) -> None:
        super().__init__(message)
        self.logs: tuple[str, ...] = tuple(logs or ())


class OperationFailed(LendingClientError):
    """A user-initiated operation aborted; carries the classification."""

    def __init__(self, operation: str, stage: str, classification: Classification) -> None:
        super().__init__(f"{operation} failed at {stage}: {classification.message}")
        self.operation = operation
        self.stage = stage
        self.classification = classification

    @property
    def kind(self) -> ErrorKind:
        return self.classification.kind


class AlreadyExistsError(OperationFailed):
    """The operation's goal was already achieved by another actor."""


class OperationCancelled(LendingClientError):
    """Cancellation was requested before the next request was submitted."""


# ---------------------------------------------------------------------------
# Classifier
# ---------------------------------------------------------------------------

_DUPLICATE_MARKERS = ("already in use", "already exists")
_PRIVILEGE_MARKERS = ("mint authority", "owner does not match", "invalid authority")
_FUNDS_MARKERS = ("insufficient funds", "insufficient lamports")


def _contains(haystacks: list[str], markers: tuple[str, ...]) -> bool:
    lowered = [h.lower() for h in haystacks]
    return any(m in h for h in lowered for m in markers)


def classify(error: BaseException) -> Classification:
    """Classify a failure. First matching rule wins.

    Validation exceptions are recognised by type so that a marker string in
    their message can never downgrade them to a benign duplicate.
    """
    message = str(error)
    logs = tuple(getattr(error, "logs", ()) or ())

    if isinstance(error, ValidationError):
        reason = "wallet_rejected" if isinstance(error, WalletRejectedError) else "invalid_input"
        return Classification(ErrorKind.VALIDATION_FAILURE, reason, message, logs)

    if isinstance(error, OperationFailed):
        return error.classification

    haystacks = [message, *logs]
    if _contains(haystacks, _DUPLICATE_MARKERS):
        return Classification(ErrorKind.BENIGN_DUPLICATE, "already_exists", message, logs)
    if _contains(haystacks, _PRIVILEGE_MARKERS):
        return Classification(
            ErrorKind.INSUFFICIENT_RESOURCE, "missing_privilege", message, logs
        )
    if _contains(haystacks, _FUNDS_MARKERS):
        return Classification(
            ErrorKind.INSUFFICIENT_RESOURCE, "insufficient_funds", message, logs
        )
    return Classification(ErrorKind.UNKNOWN, "unknown", message, logs)


def user_message(classification: Classification, subject: str = "") -> str:
    """Render the text shown to the user for a classified failure."""
    if classification.kind is ErrorKind.BENIGN_DUPLICATE:
        return f"{subject or 'Account'} already exists"
    if classification.reason == "missing_privilege":
        return "Operator wallet does not have mint authority for this token"
    if classification.reason == "insufficient_funds":
        return "Insufficient SOL for transaction fees"
    if classification.reason == "wallet_rejected":
        return "Request was not signed by the wallet"
    prefix = f"{subject} failed" if subject else "Request failed"
    return f"{prefix}: {classification.message}"
