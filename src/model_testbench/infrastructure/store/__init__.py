"""
Test store package
"""

from model_testbench.infrastructure.store.base import TestStore
from model_testbench.infrastructure.store.sql_store import SqlTestStore

__all__ = ["SqlTestStore", "TestStore"]
