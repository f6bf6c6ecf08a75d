import os

import pytest

from vault_sync.domain.models import OperationKind
from vault_sync.infrastructure.config.app_config import VaultSyncConfig

SETTINGS = """
[poller]
interval_seconds = 12
token_address = "0xusdc"

[reconcile]
grace_cycles = 4
clock_skew_seconds = 30

[reconcile.grace_cycles_by_kind]
emergency_withdraw = 6

[countdown]
tick_seconds = 0.5

[ledger]
base_url = "http://indexer.local"
"""


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in list(os.environ):
        if key.startswith("VAULT__"):
            monkeypatch.delenv(key, raising=False)


def write_settings(tmp_path, text=SETTINGS):
    path = tmp_path / "settings.toml"
    path.write_text(text, encoding="utf-8")
    return str(path)


def test_defaults_without_files():
    cfg = VaultSyncConfig.load(None)
    assert cfg.poller.interval_seconds == 10.0
    assert cfg.reconcile.grace_cycles == 3
    assert cfg.countdown.tick_seconds == 1.0
    assert cfg.loaded_files == []
    assert cfg.grace_seconds_for(OperationKind.DEPOSIT) == 30.0


def test_loads_toml_sections(tmp_path):
    cfg = VaultSyncConfig.load(write_settings(tmp_path))
    assert cfg.poller.interval_seconds == 12.0
    assert cfg.poller.token_address == "0xusdc"
    assert cfg.reconcile.grace_cycles == 4
    assert cfg.reconcile.clock_skew_seconds == 30.0
    assert cfg.reconcile.grace_cycles_by_kind == {OperationKind.EMERGENCY_WITHDRAW: 6}
    assert cfg.countdown.tick_seconds == 0.5
    assert cfg.ledger.base_url == "http://indexer.local"
    assert cfg.loaded_files == ["settings.toml"]
    assert cfg.grace_seconds_for(OperationKind.EMERGENCY_WITHDRAW) == 72.0
    assert cfg.grace_seconds_for(OperationKind.WITHDRAW) == 48.0


def test_env_overrides_are_recorded(tmp_path, monkeypatch):
    monkeypatch.setenv("VAULT__POLLER__INTERVAL_SECONDS", "5")
    monkeypatch.setenv("VAULT__RECONCILE__GRACE_CYCLES_BY_KIND__WITHDRAW", "2")
    cfg = VaultSyncConfig.load(write_settings(tmp_path))

    assert cfg.poller.interval_seconds == 5.0
    assert cfg.reconcile.grace_cycles_by_kind[OperationKind.WITHDRAW] == 2
    assert cfg.reconcile.grace_cycles_by_kind[OperationKind.EMERGENCY_WITHDRAW] == 6
    keys = {(o.key, o.source) for o in cfg.overrides}
    assert ("poller.interval_seconds", "env") in keys


def test_empty_env_value_clears_token_address(tmp_path, monkeypatch):
    monkeypatch.setenv("VAULT__POLLER__TOKEN_ADDRESS", "")
    cfg = VaultSyncConfig.load(write_settings(tmp_path))

    assert cfg.poller.token_address is None
    assert ("poller.token_address", "env") in {(o.key, o.source) for o in cfg.overrides}


def test_dotenv_file_feeds_env_overrides(tmp_path):
    dotenv = tmp_path / ".env"
    dotenv.write_text("VAULT__COUNTDOWN__TICK_SECONDS=2\n", encoding="utf-8")
    try:
        cfg = VaultSyncConfig.load(None, dotenv_path=str(dotenv))
    finally:
        os.environ.pop("VAULT__COUNTDOWN__TICK_SECONDS", None)
    assert cfg.countdown.tick_seconds == 2.0
    assert cfg.loaded_files == [".env"]


@pytest.mark.parametrize(
    "text",
    [
        "[poller]\ninterval_seconds = 0\n",
        "[reconcile]\ngrace_cycles = 0\n",
        "[reconcile.grace_cycles_by_kind]\nstake = 2\n",
        "[countdown]\ntick_seconds = -1\n",
        "[reconcile]\nclock_skew_seconds = \"soon\"\n",
    ],
)
def test_invalid_settings_raise(tmp_path, text):
    with pytest.raises(ValueError):
        VaultSyncConfig.load(write_settings(tmp_path, text))
