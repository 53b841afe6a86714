"""Repository package: expose all concrete repositories from one import."""
from .pin_repository import PinRepository
from .category_repository import CategoryRepository
from .pin_category_repository import PinCategoryRepository
from .context_meta_repository import ContextMetaRepository, SLOTS

__all__ = [
    'PinRepository',
    'CategoryRepository',
    'PinCategoryRepository',
    'ContextMetaRepository',
    'SLOTS',
]
