"""Global enums — closed sets, str-valued for serialization."""

from enum import Enum


class PoolStatus(str, Enum):
    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    HALTED = "HALTED"  # fatal data-integrity signal; operator must clear


class AccrualState(str, Enum):
    IDLE = "IDLE"
    ACCRUING = "ACCRUING"


class AccrualOutcome(str, Enum):
    ADVANCED = "ADVANCED"
    CURRENT = "CURRENT"  # same timestamp, idempotent no-op
    REGRESSION = "REGRESSION"  # earlier timestamp, no-op at index level


class CollateralTier(str, Enum):
    CRYPTO = "CRYPTO"
    RWA = "RWA"
    RECEIVABLE = "RECEIVABLE"


class CreditTier(str, Enum):
    DIAMOND = "DIAMOND"
    GOLD = "GOLD"
    SILVER = "SILVER"
    BRONZE = "BRONZE"
    UNRATED = "UNRATED"


class BreakerState(str, Enum):
    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


class PriceStatus(str, Enum):
    AVAILABLE = "AVAILABLE"
    STALE = "STALE"
    BREAKER_OPEN = "BREAKER_OPEN"
    NO_PRICE = "NO_PRICE"


class RejectReason(str, Enum):
    STALE = "STALE"
    DEVIATION = "DEVIATION"
    BREAKER_OPEN = "BREAKER_OPEN"
    OUT_OF_ORDER = "OUT_OF_ORDER"
    FUTURE_TIMESTAMP = "FUTURE_TIMESTAMP"
    INVALID_PRICE = "INVALID_PRICE"
    LOW_CONFIDENCE = "LOW_CONFIDENCE"


class LiquidationTier(str, Enum):
    """Ordered by severity: MARGIN_CALL is the mildest."""
    MARGIN_CALL = "MARGIN_CALL"
    SOFT_LIQUIDATION = "SOFT_LIQUIDATION"
    FORCED_LIQUIDATION = "FORCED_LIQUIDATION"
    FULL_LIQUIDATION = "FULL_LIQUIDATION"


class LiquidationAction(str, Enum):
    NONE = "NONE"
    ALERT = "ALERT"
    EXECUTED = "EXECUTED"
    DEFERRED_COOLDOWN = "DEFERRED_COOLDOWN"
    DEFERRED_PRICE_UNAVAILABLE = "DEFERRED_PRICE_UNAVAILABLE"
    NO_DEBT = "NO_DEBT"


class AlertLevel(str, Enum):
    WARNING = "WARNING"
    DANGER = "DANGER"
    CRITICAL = "CRITICAL"


class OperationType(str, Enum):
    ACCRUAL = "ACCRUAL"
    SUPPLY = "SUPPLY"
    WITHDRAW = "WITHDRAW"
    BORROW = "BORROW"
    REPAY = "REPAY"
    ADD_COLLATERAL = "ADD_COLLATERAL"
    REMOVE_COLLATERAL = "REMOVE_COLLATERAL"
    LIQUIDATION = "LIQUIDATION"
