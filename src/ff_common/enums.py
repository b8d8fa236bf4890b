"""Global enums: must match DB CHECK constraints exactly."""

from enum import Enum


class WalletTxnType(str, Enum):
    CREDIT = "CREDIT"
    DEBIT = "DEBIT"


class WalletReason(str, Enum):
    RECHARGE = "RECHARGE"
    SHIPMENT = "SHIPMENT"
    COMPENSATION = "compensation"
    ADMIN_ADJUSTMENT = "ADMIN_ADJUSTMENT"


class AdjustmentType(str, Enum):
    ADD = "ADD"
    REMOVE = "REMOVE"
    SET = "SET"


class InventoryActionType(str, Enum):
    """What the inventory ledger records for each mutation."""
    ADD = "ADD"
    CONSUMED = "CONSUMED"      # REMOVE adjustment
    ADJUSTMENT = "ADJUSTMENT"  # SET adjustment
    TRANSFER = "TRANSFER"


class Bucket(str, Enum):
    """Mutable inventory buckets. `available` is derived, never transferred into."""
    ON_HAND = "on_hand"
    RESERVED = "reserved"
    DEFECTIVE = "defective"
    QUARANTINE = "quarantine"
    IN_TRANSIT = "in_transit"


class ShipmentPriority(str, Enum):
    STANDARD = "STANDARD"
    EXPRESS = "EXPRESS"


class RuleActionType(str, Enum):
    BASE_RATE = "BASE_RATE"    # per-box rate, paise
    SURCHARGE = "SURCHARGE"    # flat paise per shipment
    MULTIPLIER = "MULTIPLIER"  # extra bps on the priority multiplier


class FulfillmentState(str, Enum):
    PRICED = "PRICED"
    ADMITTED = "ADMITTED"
    BOOKED = "BOOKED"
    SETTLED = "SETTLED"
    REJECTED = "REJECTED"
    COMPENSATED = "COMPENSATED"
    FAILED = "FAILED"  # pricing failed, no side effects


class ConsigneeKind(str, Enum):
    SERVICE_CENTER = "SERVICE_CENTER"
    DISTRIBUTOR = "DISTRIBUTOR"
    CUSTOMER = "CUSTOMER"
