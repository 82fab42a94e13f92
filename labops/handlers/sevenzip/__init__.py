from .handler import SevenZipHandler

__all__ = ["SevenZipHandler"]
