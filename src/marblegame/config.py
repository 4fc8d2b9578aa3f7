from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="MARBLE_",
    )

    # Run parameters
    starting_equity: float = 10000.0
    risk_percent: float = 2.0  # percent of current equity per draw
    draw_count: int = 100

    # Distribution
    default_profile: str = "Default"
    probability_tolerance: float = 0.1  # percentage points

    # Monte Carlo
    simulation_count: int = 1000
    histogram_buckets: int = 20
    batch_size: int = 100
    max_workers: int = 1
    seed: str | None = None  # int-like strings are used as integers

    # Logging
    log_dir: str = "logs"
    log_level: str = "INFO"
