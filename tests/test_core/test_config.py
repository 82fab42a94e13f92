from __future__ import annotations

import pytest

from labops.core.config import ConfigError, load_backup_config, resolve_config_path


CONFIG_TOML = """
[strategy]
number_of_daily_backups = 5
number_of_weekly_backups = 2
number_of_monthly_backups = 0
day_of_week = "friday"

[handlers.robocopy]
options = ["MIR", "/R:2"]
[handlers.7zip]
options = ["mx9"]
volume_size = "4G"
[handlers.multipar]
redundancy_rate = 15

[[targets]]
name = "documents"
source = "D:/Documents"
description = "User documents"

[[targets]]
name = "photos"
source = "D:/Photos"
destination = "pictures"

[[destinations.local_drives]]
path = "E:/Backups"
[[destinations.smb_shares]]
path = "//nas/backups"
targets = ["photos"]
[[destinations.mirror_clones]]
path = "E:/Mirrors"
[[destinations.git_bundles]]
source = "E:/Mirrors"
path = "E:/Bundles"

[unrelated_section]
anything = true
"""


def _write(tmp_path, text):
    path = tmp_path / "backup.toml"
    path.write_text(text, encoding="utf-8")
    return path


def test_load_full_document(tmp_path):
    config = load_backup_config(_write(tmp_path, CONFIG_TOML))

    assert config.strategy.number_of_daily_backups == 5
    assert config.strategy.number_of_monthly_backups == 0
    assert config.strategy.day_of_week == "Friday"
    assert config.handlers.sevenzip.volume_size == "4g"
    assert config.handlers.multipar.redundancy_rate == 15
    assert [t.name for t in config.targets] == ["documents", "photos"]
    assert config.get_target("photos").folder == "pictures"
    assert config.get_target("documents").folder == "documents"
    assert config.destinations.smb_shares[0].targets == ["photos"]
    assert config.destinations.git_bundles[0].pattern == "*.git"


def test_path_from_environment(tmp_path, monkeypatch):
    path = _write(tmp_path, CONFIG_TOML)
    monkeypatch.setenv("LABOPS_BACKUP_CONFIG", str(path))
    assert resolve_config_path() == path
    assert len(load_backup_config().targets) == 2


def test_missing_path_and_env(monkeypatch):
    monkeypatch.delenv("LABOPS_BACKUP_CONFIG", raising=False)
    with pytest.raises(ConfigError):
        load_backup_config()


def test_missing_file(tmp_path):
    with pytest.raises(ConfigError, match="not found"):
        load_backup_config(tmp_path / "nope.toml")


def test_invalid_toml(tmp_path):
    with pytest.raises(ConfigError, match="invalid TOML"):
        load_backup_config(_write(tmp_path, "[strategy\nnumber = 1"))


@pytest.mark.parametrize(
    "snippet",
    [
        '[strategy]\nday_of_week = "Funday"\n',
        '[[targets]]\nname = "bad name"\nsource = "x"\n',
        '[[targets]]\nname = "a"\nsource = "x"\n[[targets]]\nname = "a"\nsource = "y"\n',
        '[[targets]]\nname = "a"\nsource = "x"\n[[destinations.local_drives]]\npath = "E:/"\ntargets = ["b"]\n',
        '[handlers.7zip]\nvolume_size = "lots"\n',
        '[handlers.multipar]\nredundancy_rate = 150\n',
        '[strategy]\nunknown_field = 1\n',
    ],
)
def test_invalid_documents_raise_config_error(tmp_path, snippet):
    with pytest.raises(ConfigError, match="invalid configuration"):
        load_backup_config(_write(tmp_path, snippet))


def test_config_error_is_value_error():
    assert issubclass(ConfigError, ValueError)
