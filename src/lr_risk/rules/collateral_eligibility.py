from src.lr_common.errors import CollateralNotEnabledError
from src.lr_config.domain.models import CollateralParams, ConfigSnapshot


def check_collateral_enabled(snapshot: ConfigSnapshot, asset_id: str) -> CollateralParams:
    """Raise UnknownAssetError / CollateralNotEnabledError; return the asset's params."""
    params = snapshot.collateral_params(asset_id)
    if not params.collateral_enabled:
        raise CollateralNotEnabledError(asset_id)
    return params
