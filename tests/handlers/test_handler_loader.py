from __future__ import annotations

import pytest

from labops.core.handlers import get_handler, list_handlers, refresh_registry
from labops.handlers.sevenzip import SevenZipHandler


def test_discovers_all_handlers():
    refresh_registry()
    keys = [h["key"] for h in list_handlers()]
    assert keys == ["gh", "git", "multipar", "robocopy", "sevenzip"]


def test_lookup_by_config_alias():
    handler = get_handler("7zip")
    assert isinstance(handler, SevenZipHandler)
    assert handler.name == "sevenzip"


def test_unknown_handler_raises_key_error():
    with pytest.raises(KeyError, match="Unknown handler"):
        get_handler("winrar")


def test_handler_info(monkeypatch):
    monkeypatch.setenv("LABOPS_MULTIPAR", "C:/MultiPar/par2j64.exe")
    info = get_handler("multipar").get_info()
    assert info == {
        "name": "multipar",
        "version": "1.0.0",
        "type": "MultiParHandler",
        "executable": "C:/MultiPar/par2j64.exe",
    }
