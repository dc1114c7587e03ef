#!/usr/bin/env python3
"""
Production Monitor - Configuration Management Module
"""

from .config_manager import ConfigManager, ConfigValidationError
from .settings import MonitoringConfig

__all__ = ['ConfigManager', 'ConfigValidationError', 'MonitoringConfig']
