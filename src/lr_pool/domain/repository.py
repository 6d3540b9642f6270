"""Position store Protocol — dependency inversion for testability.

PoolLedger is the only caller; the in-memory store backs tests and the
default engine, a persistence collaborator can provide its own.
"""

from typing import Protocol

from src.lr_pool.domain.models import (
    BorrowPosition,
    CollateralDeposit,
    Pool,
    SupplyPosition,
)


class PositionStoreProtocol(Protocol):
    def get_pool(self, pool_id: str) -> Pool | None: ...

    def save_pool(self, pool: Pool) -> None: ...

    def list_pools(self) -> list[Pool]: ...

    def get_supply(self, pool_id: str, owner_id: str) -> SupplyPosition | None: ...

    def save_supply(self, position: SupplyPosition) -> None: ...

    def get_borrow(self, pool_id: str, owner_id: str) -> BorrowPosition | None: ...

    def save_borrow(self, position: BorrowPosition) -> None: ...

    def list_borrows(
        self, pool_id: str | None = None, owner_id: str | None = None
    ) -> list[BorrowPosition]: ...

    def get_collateral(self, owner_id: str, asset_id: str) -> CollateralDeposit | None: ...

    def save_collateral(self, deposit: CollateralDeposit) -> None: ...

    def list_collateral(self, owner_id: str) -> list[CollateralDeposit]: ...
