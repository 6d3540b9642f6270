"""Built-in risk parameter document.

Decimal strings are converted exactly to fixed point by the loader.
"""

from typing import Any

_STABLE_CURVE = {
    "base_rate": "0.02",
    "slope_below": "0.07",
    "kink": "0.80",
    "slope_above": "0.30",
    "reserve_factor": "0.10",
}

_MAJOR_CURVE = {
    "base_rate": "0.01",
    "slope_below": "0.04",
    "kink": "0.65",
    "slope_above": "0.50",
    "reserve_factor": "0.15",
}

DEFAULT_RISK_CONFIG: dict[str, Any] = {
    "version": 1,
    "pools": {
        "USDC": {"asset_id": "USDC", "rate_curve": _STABLE_CURVE},
        "USDT": {"asset_id": "USDT", "rate_curve": _STABLE_CURVE},
        "wBTC": {"asset_id": "wBTC", "rate_curve": _MAJOR_CURVE},
        "wETH": {"asset_id": "wETH", "rate_curve": _MAJOR_CURVE},
        "CC": {
            "asset_id": "CC",
            "rate_curve": {
                "base_rate": "0.03",
                "slope_below": "0.10",
                "kink": "0.60",
                "slope_above": "0.80",
                "reserve_factor": "0.20",
            },
        },
        "RWA-TBILL": {
            "asset_id": "RWA-TBILL",
            "borrow_enabled": False,
            "rate_curve": {
                "base_rate": "0.04",
                "slope_below": "0.03",
                "kink": "0.90",
                "slope_above": "0.15",
                "reserve_factor": "0.05",
            },
        },
    },
    "collateral": {
        "USDC": {"tier": "CRYPTO", "ltv": "0.80", "liquidation_threshold": "0.85",
                 "haircut": "0", "liquidation_penalty": "0.04"},
        "USDT": {"tier": "CRYPTO", "ltv": "0.80", "liquidation_threshold": "0.85",
                 "haircut": "0", "liquidation_penalty": "0.04"},
        "wBTC": {"tier": "CRYPTO", "ltv": "0.73", "liquidation_threshold": "0.80",
                 "haircut": "0", "liquidation_penalty": "0.06"},
        "wETH": {"tier": "CRYPTO", "ltv": "0.75", "liquidation_threshold": "0.82",
                 "haircut": "0", "liquidation_penalty": "0.05"},
        "CC": {"tier": "CRYPTO", "ltv": "0.55", "liquidation_threshold": "0.65",
               "haircut": "0", "liquidation_penalty": "0.08"},
        "RWA-TBILL": {"tier": "RWA", "ltv": "0.85", "liquidation_threshold": "0.90",
                      "haircut": "0.05", "liquidation_penalty": "0.03"},
        "TIFA-REC": {"tier": "RECEIVABLE", "ltv": "0.50", "liquidation_threshold": "0.60",
                     "haircut": "0.20", "liquidation_penalty": "0.10"},
    },
    "credit_tiers": {
        "DIAMOND": {"min_score": 850, "discount": "0.25", "max_ltv": "0.85",
                    "alert_thresholds": ["1.30", "1.20", "1.10"]},
        "GOLD": {"min_score": 700, "discount": "0.15", "max_ltv": "0.78",
                 "alert_thresholds": ["1.40", "1.30", "1.15"]},
        "SILVER": {"min_score": 500, "discount": "0.08", "max_ltv": "0.70",
                   "alert_thresholds": ["1.50", "1.35", "1.20"]},
        "BRONZE": {"min_score": 300, "discount": "0", "max_ltv": "0.60",
                   "alert_thresholds": ["1.60", "1.40", "1.25"]},
        "UNRATED": {"min_score": 0, "discount": "0", "max_ltv": "0.50",
                    "alert_thresholds": ["1.80", "1.50", "1.30"]},
    },
    "liquidation_tiers": [
        {"tier": "MARGIN_CALL", "hf_floor": "0.95", "repay": "0"},
        {"tier": "SOFT_LIQUIDATION", "hf_floor": "0.90", "repay": "0.25"},
        {"tier": "FORCED_LIQUIDATION", "hf_floor": "0.85", "repay": "0.50"},
        {"tier": "FULL_LIQUIDATION", "hf_floor": "0", "repay": "1"},
    ],
    "oracles": {},
}
