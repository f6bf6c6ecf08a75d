from .app_config import (
    CountdownSettings,
    LedgerSettings,
    OverrideRecord,
    PollerSettings,
    ReconcileSettings,
    VaultSyncConfig,
)

__all__ = [
    "CountdownSettings",
    "LedgerSettings",
    "OverrideRecord",
    "PollerSettings",
    "ReconcileSettings",
    "VaultSyncConfig",
]
