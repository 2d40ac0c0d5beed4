"""
Configuration package for the attendance backend.

Environment settings and logging setup.
"""

from app.config.settings import Settings, get_settings

__all__ = ['Settings', 'get_settings']
