"""Pydantic schemas for configuration documents."""

from .config import (
    BackupConfig,
    Destinations,
    GitBundle,
    HandlerOptions,
    Handlers,
    LocalDrive,
    MirrorClone,
    MultiParOptions,
    SevenZipOptions,
    SmbShare,
    Strategy,
    Target,
)

__all__ = [
    "BackupConfig",
    "Destinations",
    "GitBundle",
    "HandlerOptions",
    "Handlers",
    "LocalDrive",
    "MirrorClone",
    "MultiParOptions",
    "SevenZipOptions",
    "SmbShare",
    "Strategy",
    "Target",
]
