"""Data model for confmirror: ORM tables and the record value type."""

from confmirror.models.base import Base
from confmirror.models.config import AdapterConfig, MainConfig
from confmirror.models.record import ConfigRecord, composite_key

__all__ = [
    "AdapterConfig",
    "Base",
    "ConfigRecord",
    "MainConfig",
    "composite_key",
]
