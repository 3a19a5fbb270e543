"""Custom exception hierarchy for the ATX engine."""


class AtxError(Exception):
    """Base exception for all ATX engine errors."""


# --- Configuration ---
class ConfigError(AtxError):
    """Invalid or missing configuration."""


# --- Input validation (rejected at the boundary) ---
class ValidationError(AtxError):
    """Malformed request parameters or trade payloads."""


class InvalidWindowError(ValidationError):
    """Window, date or interval parameters cannot be interpreted."""


class IngestionLimitError(ValidationError):
    """Too many trades submitted in one request."""


# --- Storage ---
class StorageError(AtxError):
    """Persistence backend failure."""


class EpochStateConflict(StorageError):
    """Optimistic version check failed while saving epoch state."""

    def __init__(self, account_id: int, expected: int, actual: int | None):
        self.account_id = account_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Epoch state conflict for account {account_id}: "
            f"expected version {expected}, found {actual}"
        )


class ConcurrencyError(StorageError):
    """Epoch state could not be written after exhausting retries."""


# --- Epochs ---
class EpochStateError(AtxError):
    """Invalid epoch state transition (e.g. out-of-order observation)."""


# --- Governance ---
class BaselineLockError(AtxError):
    """Baseline lock requested while the account is not eligible."""
