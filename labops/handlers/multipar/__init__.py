from .handler import MultiParHandler

__all__ = ["MultiParHandler"]
