"""Configuration provider Protocol — the engine's view of protocol configuration.

Unit tests inject any object that conforms to this Protocol.
"""

from typing import Protocol

from src.lr_config.domain.models import (
    CollateralParams,
    ConfigSnapshot,
    CreditAssessment,
    PoolParams,
)


class ConfigProviderProtocol(Protocol):
    def snapshot(self) -> ConfigSnapshot: ...

    def get_pool_params(self, pool_id: str) -> PoolParams: ...

    def get_collateral_params(self, asset_id: str) -> CollateralParams: ...

    def get_credit_assessment(self, owner_id: str) -> CreditAssessment | None: ...

    def set_credit_assessment(self, assessment: CreditAssessment) -> None: ...
