# src/atlas_assets/core/io/__init__.py
"""
I/O managers: contrato de store/load e backends de referência.
"""

from .joblib_manager import JoblibIOManager
from .manager import InMemoryIOManager, IOManager

__all__ = ["IOManager", "InMemoryIOManager", "JoblibIOManager"]
