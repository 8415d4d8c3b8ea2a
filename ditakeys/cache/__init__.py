from .cache import KeySpaceCache
from .invalidation import InvalidationQueue

__all__ = ['KeySpaceCache', 'InvalidationQueue']
