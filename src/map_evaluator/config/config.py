"""Configuration management with YAML support and CLI overrides."""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from map_evaluator.data.features import DEFAULT_FEATURES_KEY
from map_evaluator.distance import get_distance_metric
from map_evaluator.errors import ConfigurationError


@dataclass
class Config:
    """Evaluation settings.

    All fields have defaults and can be overridden via YAML or CLI.
    """

    # Feature source
    features_key: str = DEFAULT_FEATURES_KEY

    # Retrieval configuration
    distance_function: str = "l2sqr"
    top_k: int = 0  # 0 = whole catalog
    exclude_query_from_db: bool = False

    # Execution
    num_workers: int = 0  # 0 = sequential

    # Logging
    log_level: str = "INFO"
    log_to_file: bool = False
    log_file: Optional[Path] = None

    def __post_init__(self) -> None:
        """Convert string paths to Path objects."""
        if self.log_file and isinstance(self.log_file, str):
            self.log_file = Path(self.log_file)

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary."""
        result = {}
        for key, value in self.__dict__.items():
            if isinstance(value, Path):
                result[key] = str(value)
            else:
                result[key] = value
        return result

    def update(self, **kwargs: Any) -> None:
        """Update configuration with new values."""
        for key, value in kwargs.items():
            if hasattr(self, key) and value is not None:
                setattr(self, key, value)
        self.__post_init__()

    def validate(self) -> None:
        """Check values before any data is loaded.

        Raises:
            ConfigurationError: Unknown distance function, invalid number or log level
        """
        get_distance_metric(self.distance_function)

        if not isinstance(self.top_k, int) or self.top_k < 0:
            raise ConfigurationError(f"top_k must be an integer >= 0, got {self.top_k!r}")
        if not isinstance(self.num_workers, int) or self.num_workers < 0:
            raise ConfigurationError(
                f"num_workers must be an integer >= 0, got {self.num_workers!r}"
            )
        if not isinstance(self.exclude_query_from_db, bool):
            raise ConfigurationError(
                f"exclude_query_from_db must be a boolean, got {self.exclude_query_from_db!r}"
            )
        if not isinstance(logging.getLevelName(str(self.log_level).upper()), int):
            raise ConfigurationError(f"Unknown log level: {self.log_level!r}")


def load_config(
    config_path: Optional[Path] = None,
    **overrides: Any
) -> Config:
    """Load configuration from YAML file with optional CLI overrides.

    Args:
        config_path: Path to YAML configuration file
        **overrides: Key-value pairs to override config values

    Returns:
        Config object with loaded and overridden values

    Example:
        >>> config = load_config(Path("config/default.yaml"), top_k=10)
    """
    # Start with default config
    config = Config()

    # Load from YAML if provided
    if config_path and config_path.exists():
        with open(config_path, "r", encoding="utf-8") as f:
            try:
                yaml_data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e
            if yaml_data:
                if not isinstance(yaml_data, dict):
                    raise ConfigurationError(
                        f"Expected a mapping in {config_path}, got {type(yaml_data).__name__}"
                    )
                config.update(**yaml_data)

    # Apply CLI overrides
    if overrides:
        config.update(**overrides)

    return config


def save_config(config: Config, output_path: Path) -> None:
    """Save configuration to YAML file.

    Args:
        config: Config object to save
        output_path: Path where to save the config
    """
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w", encoding="utf-8") as f:
        yaml.dump(config.to_dict(), f, default_flow_style=False, sort_keys=False)
