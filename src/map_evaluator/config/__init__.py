"""Configuration loading."""

from map_evaluator.config.config import Config, load_config, save_config

__all__ = ["Config", "load_config", "save_config"]
