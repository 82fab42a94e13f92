from .handler import GitHandler

__all__ = ["GitHandler"]
