"""Pre-liquidation alert levels per credit tier."""

from src.lr_common.enums import AlertLevel
from src.lr_config.domain.models import CreditTierParams


def alert_level(health_factor: int, tier: CreditTierParams) -> AlertLevel | None:
    """CRITICAL / DANGER / WARNING at or below the tier's thresholds, else None."""
    warning, danger, critical = tier.alert_thresholds
    if health_factor <= critical:
        return AlertLevel.CRITICAL
    if health_factor <= danger:
        return AlertLevel.DANGER
    if health_factor <= warning:
        return AlertLevel.WARNING
    return None
