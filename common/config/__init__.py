"""
Configuration module - Base settings shared by the notification client and the mock server.
"""

from common.config.base_settings import BaseAppSettings

__all__ = ["BaseAppSettings"]
