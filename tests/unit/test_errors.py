from src.lr_common.errors import (
    AccrualOutOfOrderError,
    AppError,
    BorrowNotEnabledError,
    CircuitBreakerOpenError,
    CollateralNotEnabledError,
    HealthFactorTooLowError,
    IndexMonotonicityError,
    InsufficientCollateralError,
    InsufficientLiquidityError,
    InsufficientSupplyBalanceError,
    InternalError,
    InvalidAmountError,
    InvalidObservationError,
    PoolHaltedError,
    PoolInactiveError,
    PoolNotFoundError,
    PositionNotFoundError,
    PriceUnavailableError,
    StaleOracleError,
    UnknownAssetError,
)


class TestAppError:
    def test_base_error(self) -> None:
        err = AppError(9999, "boom", 418)
        assert err.code == 9999
        assert err.message == "boom"
        assert err.http_status == 418
        assert str(err) == "boom"

    def test_default_status(self) -> None:
        assert AppError(1, "x").http_status == 500


class TestPoolErrors:
    def test_codes(self) -> None:
        assert PoolNotFoundError("USDC").code == 1001
        assert PoolInactiveError("USDC").code == 1002
        assert PoolHaltedError("USDC", "r").code == 1003
        assert InsufficientLiquidityError("USDC", 2, 1).code == 1004
        assert AccrualOutOfOrderError("USDC", 10, 5).code == 1005
        assert IndexMonotonicityError("USDC", "supply_index", 2, 1).code == 1006

    def test_accrual_out_of_order_detail(self) -> None:
        err = AccrualOutOfOrderError("USDC", 100, 90)
        assert err.last_accrual_ts == 100
        assert err.requested_ts == 90
        assert "90 < last 100" in err.message

    def test_halted_carries_reason(self) -> None:
        err = PoolHaltedError("USDC", "index fell")
        assert err.reason == "index fell"
        assert err.http_status == 423


class TestPositionErrors:
    def test_codes(self) -> None:
        assert InvalidAmountError(0).code == 2001
        assert InsufficientSupplyBalanceError(2, 1).code == 2002
        assert InsufficientCollateralError(2, 1).code == 2003
        assert HealthFactorTooLowError(1, 2).code == 2004
        assert PositionNotFoundError("x").code == 2005

    def test_health_factor_detail(self) -> None:
        err = HealthFactorTooLowError(current=5, required=10)
        assert err.current == 5
        assert err.required == 10
        assert err.http_status == 422


class TestOracleErrors:
    def test_stale_detail(self) -> None:
        err = StaleOracleError("WETH", 400, 300)
        assert err.code == 3001
        assert err.staleness == 400
        assert err.max_staleness == 300

    def test_breaker_message(self) -> None:
        assert CircuitBreakerOpenError("WETH").message == "Circuit breaker open for WETH"
        assert CircuitBreakerOpenError("WETH", "jump").message.endswith(": jump")

    def test_codes(self) -> None:
        assert PriceUnavailableError("WETH").code == 3003
        assert InvalidObservationError("WETH", "bad").code == 3004


class TestConfigErrors:
    def test_codes(self) -> None:
        assert UnknownAssetError("X").code == 4001
        assert CollateralNotEnabledError("X").code == 4002
        assert BorrowNotEnabledError("X").code == 4003
        assert InternalError().code == 9002

    def test_all_are_app_errors(self) -> None:
        assert isinstance(UnknownAssetError("X"), AppError)
