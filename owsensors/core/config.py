from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_prefix="OWSENSORS_", extra="ignore")

    app_name: str = "1-Wire Sensor Bridge"

    # Gateway: "sim" for development, "http" for a real gateway
    gateway_mode: str = Field(default="sim")
    gateway_url: str = "http://127.0.0.1:2121"
    gateway_timeout_s: float = 5.0
    gateway_retries: int = 1  # transport-level connect retries, owned by the gateway client

    # Polling
    poll_seconds: float = 10.0
    forced_refresh_cycles: int = 30  # every Nth cycle reports unchanged values too; 0 = only the first

    # Sensor definitions (JSON); empty = bundled owsensors/config/sensors.json
    sensors_file: str = ""

    # Storage
    sqlite_path: str = Field(default="owsensors.db")

    # Logging
    log_level: str = "INFO"
    log_file: str = "owsensors.log"  # empty disables the rotating file


settings = Settings()
