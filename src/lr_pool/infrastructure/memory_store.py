"""In-memory PositionStoreProtocol implementation."""

from src.lr_pool.domain.models import (
    BorrowPosition,
    CollateralDeposit,
    Pool,
    SupplyPosition,
)


class InMemoryPositionStore:
    def __init__(self) -> None:
        self._pools: dict[str, Pool] = {}
        self._supply: dict[tuple[str, str], SupplyPosition] = {}
        self._borrow: dict[tuple[str, str], BorrowPosition] = {}
        self._collateral: dict[tuple[str, str], CollateralDeposit] = {}

    def get_pool(self, pool_id: str) -> Pool | None:
        return self._pools.get(pool_id)

    def save_pool(self, pool: Pool) -> None:
        self._pools[pool.pool_id] = pool

    def list_pools(self) -> list[Pool]:
        return [self._pools[k] for k in sorted(self._pools)]

    def get_supply(self, pool_id: str, owner_id: str) -> SupplyPosition | None:
        return self._supply.get((pool_id, owner_id))

    def save_supply(self, position: SupplyPosition) -> None:
        self._supply[(position.pool_id, position.owner_id)] = position

    def get_borrow(self, pool_id: str, owner_id: str) -> BorrowPosition | None:
        return self._borrow.get((pool_id, owner_id))

    def save_borrow(self, position: BorrowPosition) -> None:
        self._borrow[(position.pool_id, position.owner_id)] = position

    def list_borrows(
        self, pool_id: str | None = None, owner_id: str | None = None
    ) -> list[BorrowPosition]:
        return [
            p
            for key, p in sorted(self._borrow.items())
            if (pool_id is None or key[0] == pool_id)
            and (owner_id is None or key[1] == owner_id)
        ]

    def get_collateral(self, owner_id: str, asset_id: str) -> CollateralDeposit | None:
        return self._collateral.get((owner_id, asset_id))

    def save_collateral(self, deposit: CollateralDeposit) -> None:
        self._collateral[(deposit.owner_id, deposit.asset_id)] = deposit

    def list_collateral(self, owner_id: str) -> list[CollateralDeposit]:
        return [
            d for key, d in sorted(self._collateral.items()) if key[0] == owner_id
        ]
