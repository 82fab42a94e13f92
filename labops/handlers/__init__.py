"""Tool handlers discovered by `labops.core.handlers.loader`."""
