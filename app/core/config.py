from typing import Literal, Optional

from atams import AtamsBaseSettings
from pydantic_settings import SettingsConfigDict


class Settings(AtamsBaseSettings):
    """
    Application Settings

    Inherits from AtamsBaseSettings which includes:
    - DATABASE_URL, DB_POOL_* (connection pool)
    - ATLAS_SSO_URL, ATLAS_APP_CODE, ATLAS_ENCRYPTION_KEY, ATLAS_ENCRYPTION_IV
    - LOGGING_ENABLED, LOG_LEVEL, LOG_TO_FILE, LOG_FILE_PATH
    - CORS_*, RATE_LIMIT_*
    - DEBUG

    Every value can be overridden via environment variables or a .env file.

    Groups added here:
    - IDENTITY_JWT_SECRET, IDENTITY_JWT_ALG, ADMIN_ROLE_LEVEL (identity collaborator)
    - GEOFENCE_* (admission policy and index refresh)
    - AUTO_CHECKOUT_* (stale session force-close)
    - VERIFICATION_*, BIOMETRIC_SCORER_* (random identity re-checks)
    - FRAUD_* (heuristic thresholds and history window)
    """
    model_config = SettingsConfigDict(env_file=".env", extra="ignore", case_sensitive=True)

    APP_NAME: str = "Attendance Integrity Engine"
    APP_VERSION: str = "1.0.0"

    DATABASE_URL: str = "sqlite:///./attendance_integrity.db"
    ATLAS_APP_CODE: str = "ATTENDANCE"

    # Identity tokens issued by the SSO / auth collaborator
    IDENTITY_JWT_SECRET: str = "change-me"
    IDENTITY_JWT_ALG: str = "HS256"
    ADMIN_ROLE_LEVEL: int = 50

    # Geofence settings
    GEOFENCE_ADMISSION_POLICY: Literal["strict", "soft"] = "strict"
    GEOFENCE_REFRESH_SECONDS: int = 60

    # Auto-checkout settings
    AUTO_CHECKOUT_MAX_HOURS: int = 16
    AUTO_CHECKOUT_REASON: str = "auto-closed: session exceeded maximum length"

    # Random verification settings
    VERIFICATION_MATCH_THRESHOLD: float = 90.0
    VERIFICATION_DEFAULT_TIMEOUT_MINUTES: int = 5
    VERIFICATION_PENDING_POLICY: Literal["reject", "supersede"] = "reject"
    VERIFICATION_REQUIRE_ACTIVE_SESSION: bool = False
    VERIFICATION_SWEEP_ENABLED: bool = True
    VERIFICATION_SWEEP_INTERVAL_SECONDS: int = 30

    # Biometric scorer collaborator
    BIOMETRIC_SCORER_URL: Optional[str] = None
    BIOMETRIC_SCORER_TIMEOUT_SECONDS: float = 5.0

    # Fraud heuristics
    FRAUD_MAX_SPEED_KMH: float = 500.0
    FRAUD_MAX_ACCURACY_M: float = 1000.0
    FRAUD_DUPLICATE_RATIO: float = 0.3
    FRAUD_MIN_SAMPLE: int = 5
    FRAUD_WINDOW_SESSIONS: int = 10
    FRAUD_WINDOW_DAYS: int = 30

    LOG_FILE_PATH: str = "logs/attendance_integrity.log"


settings = Settings()
