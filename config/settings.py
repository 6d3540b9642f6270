from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # App
    APP_NAME: str = "Lending Risk Engine"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Risk parameter document (JSON). None = built-in defaults.
    RISK_CONFIG_PATH: str | None = None

    # Accrual
    SECONDS_PER_YEAR: int = 31_536_000
    ACCRUAL_SERIES_TERMS: int = 24
    ACCRUAL_INTERVAL_SECONDS: int = 300

    # Credit
    CREDIT_DOWNGRADE_GRACE_SECONDS: int = 7 * 86_400
    DOWNGRADE_GRACE_APPLIES_TO_NEW_POSITIONS: bool = False

    # Health factor floor for borrow / collateral withdrawal, WAD-scaled (1e18 = 1.0)
    MIN_BORROW_HEALTH_FACTOR: int = 10**18

    # Liquidation
    LIQUIDATION_COOLDOWN_SECONDS: int = 600
    LIQUIDATION_SCAN_INTERVAL_SECONDS: int = 60

    # Oracle defaults (per-asset overrides live in the risk config)
    ORACLE_MAX_STALENESS_SECONDS: int = 300
    ORACLE_DEVIATION_BOUND_BPS: int = 1_000
    ORACLE_TWAP_WINDOW_SECONDS: int = 300
    ORACLE_TWAP_MAX_SAMPLES: int = 150
    ORACLE_MIN_CONFIDENCE_BPS: int = 0
    ORACLE_REJECTED_HISTORY: int = 100

    # Pool balance identity tolerance (rounding dust), in WAD units
    INVARIANT_TOLERANCE_WEI: int = 1_000_000

    # Pagination
    EVENT_PAGE_MAX_LIMIT: int = 100


settings = Settings()
