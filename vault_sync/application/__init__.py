from .session import VaultSession

__all__ = ["VaultSession"]
