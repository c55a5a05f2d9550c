"""
LSM-tree storage engine.
"""

from blockdb.engine.engine import Engine
from blockdb.engine.write_batch import EngineWriteBatch

__all__ = ["Engine", "EngineWriteBatch"]
