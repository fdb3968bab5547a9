"""Configuration management."""

from cascade.config.manager import ConfigManager
from cascade.config.schema import CascadeConfig, OrchestratorSettings

__all__ = ["CascadeConfig", "ConfigManager", "OrchestratorSettings"]
