"""Configuration module for the tradesim engine."""

from config.settings import EngineSettings, get_settings

__all__ = ["EngineSettings", "get_settings"]
