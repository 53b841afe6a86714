"""Services package: expose all concrete services from one import."""
from .memory_store import MemoryStore
from .query_service import QueryService
from .selection_state import SelectionState

__all__ = [
    'MemoryStore',
    'QueryService',
    'SelectionState',
]
