from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    # Database (geofence definitions)
    DATABASE_URL: str = "sqlite+aiosqlite:///./safetrail.db"
    DATABASE_ECHO: bool = False
    GEOFENCE_STORE: str = "sql"  # sql | memory

    # Alert ingestion backend
    ALERTS_API_URL: str = "http://localhost:8000/alerts"
    ALERTS_API_TOKEN: str = ""  # Opaque identity of the signed-in user
    ALERT_DELIVERY_TIMEOUT_SECONDS: float = 10.0

    # Monitoring thresholds
    INACTIVITY_THRESHOLD_MINUTES: float = 15.0
    ROUTE_DEVIATION_THRESHOLD_METERS: float = 500.0

    # Tick scheduling
    ACTIVITY_CHECK_INTERVAL_SECONDS: float = 60.0
    ANOMALY_CHECK_INTERVAL_SECONDS: float = 120.0

    # Simulated anomaly detector
    ANOMALY_PROBABILITY: float = 0.10
    ANOMALY_HIGH_SEVERITY_PROBABILITY: float = 0.30

    # Local alert history
    ALERT_HISTORY_STORE: str = "sql"  # sql | memory
    MONITORING_ALERT_HISTORY_LIMIT: int = 10
    GEOFENCE_ALERT_HISTORY_LIMIT: int = 50

    # Panic button
    PANIC_COUNTDOWN_SECONDS: float = 5.0

    class Config:
        env_file = ".env"

settings = Settings()
