from .storage import LocalRealmStorage

__all__ = ["LocalRealmStorage"]
