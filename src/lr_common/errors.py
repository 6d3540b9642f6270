"""Unified error codes and custom exceptions.

Error code ranges:
  1xxx: Pool
  2xxx: Position
  3xxx: Oracle
  4xxx: Config
  9xxx: System

http_status is carried so an outer API layer can map errors without
knowing the engine's internals.
"""


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


# --- 1xxx: Pool ---

class PoolNotFoundError(AppError):
    def __init__(self, pool_id: str) -> None:
        self.pool_id = pool_id
        super().__init__(1001, f"Pool not found: {pool_id}", 404)


class PoolInactiveError(AppError):
    def __init__(self, pool_id: str) -> None:
        self.pool_id = pool_id
        super().__init__(1002, f"Pool is paused: {pool_id}", 422)


class PoolHaltedError(AppError):
    def __init__(self, pool_id: str, reason: str) -> None:
        self.pool_id = pool_id
        self.reason = reason
        super().__init__(
            1003, f"Pool {pool_id} is halted pending operator intervention: {reason}", 423
        )


class InsufficientLiquidityError(AppError):
    def __init__(self, pool_id: str, requested: int, available: int) -> None:
        self.pool_id = pool_id
        self.requested = requested
        self.available = available
        super().__init__(
            1004,
            f"Insufficient liquidity in {pool_id}: requested {requested}, available {available}",
            422,
        )


class AccrualOutOfOrderError(AppError):
    def __init__(self, pool_id: str, last_accrual_ts: int, requested_ts: int) -> None:
        self.pool_id = pool_id
        self.last_accrual_ts = last_accrual_ts
        self.requested_ts = requested_ts
        super().__init__(
            1005,
            f"Accrual timestamp regression on {pool_id}: "
            f"requested {requested_ts} < last {last_accrual_ts}",
            409,
        )


class IndexMonotonicityError(AppError):
    def __init__(self, pool_id: str, index_name: str, before: int, after: int) -> None:
        self.pool_id = pool_id
        self.index_name = index_name
        self.before = before
        self.after = after
        super().__init__(
            1006,
            f"{index_name} decreased on {pool_id}: {before} -> {after}",
            500,
        )


# --- 2xxx: Position ---

class InvalidAmountError(AppError):
    def __init__(self, amount: int) -> None:
        self.amount = amount
        super().__init__(2001, f"Amount must be positive, got {amount}", 400)


class InsufficientSupplyBalanceError(AppError):
    def __init__(self, requested: int, available: int) -> None:
        self.requested = requested
        self.available = available
        super().__init__(
            2002,
            f"Insufficient supply balance: requested {requested}, available {available}",
            422,
        )


class InsufficientCollateralError(AppError):
    def __init__(self, required: int, available: int) -> None:
        self.required = required
        self.available = available
        super().__init__(
            2003,
            f"Insufficient collateral: required {required}, available {available}",
            422,
        )


class HealthFactorTooLowError(AppError):
    def __init__(self, current: int, required: int) -> None:
        self.current = current
        self.required = required
        super().__init__(
            2004,
            f"Health factor {current} would fall below required {required}",
            422,
        )


class PositionNotFoundError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(2005, f"Position not found: {detail}", 404)


# --- 3xxx: Oracle ---

class StaleOracleError(AppError):
    def __init__(self, asset_id: str, staleness: int, max_staleness: int) -> None:
        self.asset_id = asset_id
        self.staleness = staleness
        self.max_staleness = max_staleness
        super().__init__(
            3001,
            f"Price for {asset_id} is stale: {staleness}s old, max {max_staleness}s",
            503,
        )


class CircuitBreakerOpenError(AppError):
    def __init__(self, asset_id: str, reason: str = "") -> None:
        self.asset_id = asset_id
        self.reason = reason
        detail = f": {reason}" if reason else ""
        super().__init__(3002, f"Circuit breaker open for {asset_id}{detail}", 503)


class PriceUnavailableError(AppError):
    def __init__(self, asset_id: str) -> None:
        self.asset_id = asset_id
        super().__init__(3003, f"No usable price for {asset_id}", 503)


class InvalidObservationError(AppError):
    def __init__(self, asset_id: str, reason: str) -> None:
        self.asset_id = asset_id
        self.reason = reason
        super().__init__(3004, f"Observation for {asset_id} rejected: {reason}", 422)


# --- 4xxx: Config ---

class UnknownAssetError(AppError):
    def __init__(self, asset_id: str) -> None:
        self.asset_id = asset_id
        super().__init__(4001, f"Asset not configured: {asset_id}", 404)


class CollateralNotEnabledError(AppError):
    def __init__(self, asset_id: str) -> None:
        self.asset_id = asset_id
        super().__init__(4002, f"Asset is not enabled as collateral: {asset_id}", 422)


class BorrowNotEnabledError(AppError):
    def __init__(self, pool_id: str) -> None:
        self.pool_id = pool_id
        super().__init__(4003, f"Borrowing is disabled for pool {pool_id}", 422)


# --- 9xxx: System ---

class InternalError(AppError):
    def __init__(self, detail: str = "Internal engine error") -> None:
        super().__init__(9002, detail, 500)
