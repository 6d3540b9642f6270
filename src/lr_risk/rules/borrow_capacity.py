from src.lr_common.errors import HealthFactorTooLowError, InsufficientCollateralError
from src.lr_risk.domain.health_factor import HealthFactorReport


def check_borrow_capacity(report: HealthFactorReport, min_health_factor: int) -> None:
    """Validate a post-action (hypothetical) report.

    Debt value above borrowing power -> InsufficientCollateralError.
    Health factor below the floor     -> HealthFactorTooLowError.
    """
    if not report.has_debt:
        return
    if report.debt_value > report.borrowing_power:
        raise InsufficientCollateralError(report.debt_value, report.borrowing_power)
    if report.health_factor < min_health_factor:
        raise HealthFactorTooLowError(report.health_factor, min_health_factor)
