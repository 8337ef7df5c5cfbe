from .storage import StoredCollection

__all__ = [
    'StoredCollection',
]
