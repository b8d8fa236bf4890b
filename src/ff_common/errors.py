"""Unified error codes and custom exceptions.

Error code ranges:
  2xxx: Wallet
  3xxx: Pricing
  4xxx: Inventory
  5xxx: Fulfillment / Carrier
  9xxx: System
"""

from typing import Any


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        super().__init__(message)

    @property
    def detail(self) -> dict[str, Any] | None:
        """Structured payload rendered into ApiResponse.data (None by default)."""
        return None


# --- 2xxx: Wallet ---

class InsufficientBalanceError(AppError):
    """Expected business outcome, reported per item, never a bug."""

    def __init__(self, required: int, available: int) -> None:
        self.required = required
        self.available = available
        self.shortfall = max(0, required - available)
        super().__init__(
            2001,
            f"Insufficient balance: required {required} paise, available {available} paise",
            422,
        )

    @property
    def detail(self) -> dict[str, Any]:
        return {
            "required": self.required,
            "available": self.available,
            "shortfall": self.shortfall,
        }


class InvalidAmountError(AppError):
    def __init__(self, amount: int) -> None:
        super().__init__(2002, f"Amount must be positive, got {amount}", 400)


class DuplicateReferenceError(AppError):
    def __init__(self, reference_id: str) -> None:
        self.reference_id = reference_id
        super().__init__(2003, f"A debit already exists for reference {reference_id}", 409)


# --- 3xxx: Pricing ---

class ConfigurationError(AppError):
    """No rate can be resolved. Fatal for the item; retrying will not help."""

    def __init__(self, detail: str) -> None:
        super().__init__(3001, f"Pricing configuration error: {detail}", 500)


class PricingRuleNotFoundError(AppError):
    def __init__(self, rule_id: int) -> None:
        super().__init__(3002, f"Pricing rule not found: {rule_id}", 404)


# --- 4xxx: Inventory ---

class InvalidQuantityError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(4001, f"Invalid quantity: {detail}", 400)


class InsufficientBucketQuantityError(AppError):
    def __init__(self, bucket: str, required: int, available: int) -> None:
        self.bucket = bucket
        self.required = required
        self.available = available
        super().__init__(
            4002,
            f"Insufficient quantity in {bucket}: required {required}, available {available}",
            422,
        )

    @property
    def detail(self) -> dict[str, Any]:
        return {"bucket": self.bucket, "required": self.required, "available": self.available}


class InventoryRecordNotFoundError(AppError):
    def __init__(self, brand_id: str, part_id: str) -> None:
        super().__init__(4003, f"No inventory record for brand {brand_id}, part {part_id}", 404)


# --- 5xxx: Fulfillment / Carrier ---

class CarrierTransientError(AppError):
    """Timeouts and 5xx from the carrier, retried a bounded number of times."""

    def __init__(self, detail: str) -> None:
        super().__init__(5001, f"Carrier temporarily unavailable: {detail}", 503)


class CarrierPermanentError(AppError):
    """Carrier refused the booking. Triggers compensation and is surfaced to caller."""

    def __init__(self, detail: str) -> None:
        super().__init__(5002, f"Carrier booking failed: {detail}", 502)


class BatchTooLargeError(AppError):
    def __init__(self, size: int, limit: int) -> None:
        super().__init__(5003, f"Batch of {size} exceeds the maximum of {limit} shipments", 400)


class CompensationFailedError(AppError):
    """The carrier failed and the refund did not go through: the debit still stands."""

    def __init__(self, reference_id: str, amount: int, detail: str) -> None:
        self.reference_id = reference_id
        self.amount = amount
        super().__init__(
            5004,
            f"Compensation of {amount} paise for reference {reference_id} failed: {detail}",
            500,
        )

    @property
    def detail(self) -> dict[str, Any]:
        return {"reference_id": self.reference_id, "amount": self.amount}


# --- 9xxx: System ---

class RateLimitError(AppError):
    def __init__(self) -> None:
        super().__init__(9001, "Rate limit exceeded", 429)


class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)


class InvariantViolationError(AppError):
    """Ledger corruption signal. Aborts processing and must alert operators."""

    def __init__(self, detail: str) -> None:
        super().__init__(9003, f"Ledger invariant violated: {detail}", 500)
