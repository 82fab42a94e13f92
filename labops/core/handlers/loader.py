"""Handler loader and dynamic registry.

- Discovers handlers by scanning `labops/handlers/*` for Python packages
  and importing any class that subclasses `ToolHandler`.
- Registry maps handler keys (folder names) to handler classes; a class may
  also declare a `config_key` alias (the TOML section name, e.g. `7zip`).
- `get_handler(name)` returns an instantiated handler.
"""

from __future__ import annotations

from typing import Dict, Type, List, Iterable

import importlib
import inspect
import logging
import os

from labops.core.handlers.base import ToolHandler


_REGISTRY: Dict[str, Type[ToolHandler]] = {}
_ALIASES: Dict[str, str] = {}


logger = logging.getLogger(__name__)


def _iter_subclasses_in_module(module) -> Iterable[Type[ToolHandler]]:
    """Yield all concrete `ToolHandler` subclasses defined or re-exported by a module."""
    for _, obj in inspect.getmembers(module, inspect.isclass):
        if issubclass(obj, ToolHandler) and obj is not ToolHandler and not inspect.isabstract(obj):
            yield obj


def _discover_handlers() -> Dict[str, Type[ToolHandler]]:
    """Scan `labops/handlers/*` directories and build a registry.

    Discovery strategy:
    - Treat each immediate child directory under `labops/handlers/` that
      contains an `__init__.py` as a handler key.
    - Import `labops.handlers.<key>`; search for subclasses of `ToolHandler`
      in the package module. If none are found, attempt
      `labops.handlers.<key>.handler`.
    - If multiple candidates exist, prefer a class whose name ends with
      "Handler"; otherwise pick the first deterministically (sorted by name).
    - Import errors for individual handlers are logged at debug level and skipped.
    """
    registry: Dict[str, Type[ToolHandler]] = {}

    package_root = os.path.dirname(os.path.dirname(os.path.dirname(__file__)))
    handlers_dir = os.path.join(package_root, "handlers")

    if not os.path.isdir(handlers_dir):
        return registry

    for entry in sorted(os.listdir(handlers_dir)):
        key_path = os.path.join(handlers_dir, entry)
        if not os.path.isdir(key_path):
            continue
        if not os.path.exists(os.path.join(key_path, "__init__.py")):
            continue

        module_base = f"labops.handlers.{entry}"

        candidates: List[Type[ToolHandler]] = []
        try:
            pkg = importlib.import_module(module_base)
            candidates.extend(_iter_subclasses_in_module(pkg))
            if not candidates:
                mod = importlib.import_module(f"{module_base}.handler")
                candidates.extend(_iter_subclasses_in_module(mod))
        except ImportError as exc:
            logger.debug("handler_import_failed | module=%s error=%s", module_base, exc)
            continue

        if not candidates:
            continue

        candidates = sorted(candidates, key=lambda c: c.__name__)
        preferred = [c for c in candidates if c.__name__.endswith("Handler")]
        registry[entry] = preferred[0] if preferred else candidates[0]

    return registry


def refresh_registry() -> None:
    """Re-scan the handlers directory and rebuild the registry."""
    global _REGISTRY, _ALIASES
    _REGISTRY = _discover_handlers()
    _ALIASES = {cls.config_key: key for key, cls in _REGISTRY.items() if cls.config_key}


def get_handler(name: str) -> ToolHandler:
    """Instantiate a handler by registry key or config alias.

    Raises KeyError if not found.
    """
    key = _ALIASES.get(name, name)
    cls = _REGISTRY.get(key)
    if cls is None:
        raise KeyError(f"Unknown handler: {name}")
    return cls(name=key)


def list_handlers() -> List[dict]:
    """Return available handlers as `{"key", "name", "version", "executable"}` dicts."""
    handlers: List[dict] = []
    for key, cls in sorted(_REGISTRY.items()):
        info = cls(name=key).get_info()
        handlers.append({
            "key": key,
            "name": info["name"],
            "version": info["version"],
            "executable": info["executable"],
        })
    return handlers


# Perform initial discovery on import
refresh_registry()
