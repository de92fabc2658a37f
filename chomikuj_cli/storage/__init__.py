"""
Storage Layer.

This package handles configuration persistence: the INI file that holds the
account name, the password hash and the default download options.
"""

from .config_manager import ConfigManager

__all__ = ["ConfigManager"]
