"""Error taxonomy for the Advent Calendar engine.

Configuration errors mean authored content is broken and should abort loudly.
Domain errors are expected and callers turn them into friendly messages.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class AdventError(Exception):
    """Base error carrying an HTTP-ish status and a JSON payload for the API layer."""

    status_code = 400
    reason = "advent_error"

    def __init__(self, message: str, status_code: Optional[int] = None, payload: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.payload = payload or {"error": self.reason, "message": message}


# ---- configuration (fatal) ----


class AdventConfigurationError(AdventError):
    status_code = 500
    reason = "configuration_error"


class VoucherCatalogError(AdventConfigurationError):
    reason = "voucher_catalog_invalid"


class MissingPromptError(AdventConfigurationError, KeyError):
    reason = "missing_prompt"

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message
        return self.message


class ContentConfigError(AdventConfigurationError):
    reason = "content_config_invalid"


# ---- domain (caller-recoverable) ----


class NoEligibleDrawsError(AdventError):
    status_code = 409
    reason = "no_eligible_draws"


class VoucherNotFoundError(AdventError):
    status_code = 404
    reason = "voucher_not_found"


class VoucherAlreadyRedeemedError(AdventError):
    status_code = 409
    reason = "voucher_already_redeemed"


class VoucherNotRedeemableError(AdventError):
    status_code = 423
    reason = "voucher_not_redeemable"


class MessageSubmissionError(AdventError):
    status_code = 400
    reason = "message_not_recorded"


# ---- storage ----


class StoreError(AdventError):
    """Raised when a backend cannot read or write."""

    status_code = 502
    reason = "store_unavailable"


class StaleWriteError(StoreError):
    """A guarded write lost against a concurrent writer."""

    status_code = 409
    reason = "stale_write"
