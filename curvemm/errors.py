"""CurveMM — error taxonomy.

Every error the engine records carries a ``kind`` string so the error log
and ``status()`` consumers can tell transient upstream trouble apart from
rejections, disabled wallets and fatal stops.
"""

from typing import Optional


class EngineError(Exception):
    """Base class for all errors raised inside the engine."""

    kind = "engine"


class TransientUpstream(EngineError):
    """An upstream call failed or timed out; retried on the next tick."""

    kind = "transient_upstream"


class MarketUnavailable(TransientUpstream):
    """The market data venue itself is unreachable."""

    kind = "market_unavailable"


class ValidationRejected(EngineError):
    """A trade intent failed validation and was dropped."""

    kind = "validation_rejected"


class WalletDisabled(EngineError):
    """A wallet was excluded from selection for the rest of the run."""

    kind = "wallet_disabled"

    def __init__(self, wallet_id: str, reason: str = "") -> None:
        self.wallet_id = wallet_id
        self.reason = reason
        message = f"wallet {wallet_id} disabled"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class KeyDecryptionError(EngineError):
    """Raised by a key store when ciphertext is corrupt or invalid."""

    kind = "key_decryption"


class ConfigInvalid(EngineError):
    """A config merge or update failed validation."""

    kind = "config_invalid"

    def __init__(self, errors: list[str], message: Optional[str] = None) -> None:
        self.errors = list(errors)
        super().__init__(message or "; ".join(self.errors) or "invalid config")


class Fatal(EngineError):
    """Irrecoverable condition; the engine transitions to stopped."""

    kind = "fatal"
