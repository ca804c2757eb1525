"""Configuration management."""

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings pulled from environment variables or a .env file."""

    # Logging Configuration
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="plain", description="Logging format (plain or json)")

    # Map Configuration
    map_width: int = Field(default=16, ge=1, description="Default map width in cells")
    map_height: int = Field(default=16, ge=1, description="Default map height in cells")

    # River Generation Configuration
    river_min_edge_distance: int = Field(
        default=2, ge=0, description="Cells the river keeps from the edge, except at its ends"
    )
    river_min_separation_ratio_of_max: float = Field(
        default=1.0, gt=0, description="Minimum entrance/exit distance, as a ratio of the worst-case maximum"
    )
    river_target_cells_ratio_of_min_separation: float = Field(
        default=1.7, gt=0, description="Target water cells, as a ratio of the minimum entrance/exit distance"
    )
    river_min_cells_ratio_of_target: float = Field(
        default=0.85, gt=0, le=1, description="Minimum water cells, as a ratio of the target"
    )
    river_closest_modifier: float = Field(default=1.0, ge=0, description="Weight of the 'closest' strategy")
    river_furthest_modifier: float = Field(default=0.5, ge=0, description="Weight of the 'furthest' strategy")
    river_center_modifier: float = Field(default=3.0, ge=0, description="Weight of the 'center' strategy")
    river_furthest_slack_threshold: float = Field(
        default=3.0, ge=0, description="Slack needed before the 'furthest' strategy gets any weight"
    )
    river_center_slack_threshold: float = Field(
        default=3.0, gt=0, description="Slack at which the 'center' strategy gets its full weight"
    )
    river_max_attempts: int = Field(default=10, ge=1, description="Generation attempts before giving up")

    # Inference Configuration
    inference_waves: int = Field(default=4, ge=0, le=4, description="Number of deduction waves to run")
    inference_path_certainty_threshold: float = Field(
        default=0.005, ge=0, description="Wave 4 branches below this certainty stop growing"
    )

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


# Instantiate singleton settings object
settings = Settings()
