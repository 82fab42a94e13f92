from .handler import GhHandler

__all__ = ["GhHandler"]
