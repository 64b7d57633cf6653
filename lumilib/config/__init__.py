"""Configuration package."""
from lumilib.config.config import Config, TestingConfig

__all__ = ['Config', 'TestingConfig']
