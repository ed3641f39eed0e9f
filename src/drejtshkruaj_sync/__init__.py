"""
drejtshkruaj_sync keeps remote spelling/grammar findings attached to a live text buffer.
"""

from __future__ import annotations

from .config import CheckerSettings, SyncConfig, config_from_dict, config_from_yaml, load_config
from .engine import AnnotationEngine
from .host import BufferEditor
from .models import CategoryCounts, EngineStatus, Finding, FindingAction, FindingCategory

__all__ = [
    "AnnotationEngine",
    "BufferEditor",
    "CategoryCounts",
    "CheckerSettings",
    "EngineStatus",
    "Finding",
    "FindingAction",
    "FindingCategory",
    "SyncConfig",
    "config_from_dict",
    "config_from_yaml",
    "load_config",
]

__version__ = "0.1.0"
