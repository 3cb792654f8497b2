"""
Settings for pipeline runs and the destination database.
"""

from .settings import DatabaseSettings, PipelineSettings, Settings, load_settings

__all__ = [
    "DatabaseSettings",
    "PipelineSettings",
    "Settings",
    "load_settings",
]
