import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import toml
from dotenv import load_dotenv
from loguru import logger

from ...domain.models.operation import OperationKind


@dataclass
class PollerSettings:
    interval_seconds: float = 10.0
    token_address: Optional[str] = None


@dataclass
class ReconcileSettings:
    grace_cycles: int = 3
    grace_cycles_by_kind: Dict[OperationKind, int] = field(default_factory=dict)
    clock_skew_seconds: float = 60.0


@dataclass
class CountdownSettings:
    tick_seconds: float = 1.0


@dataclass
class LedgerSettings:
    base_url: Optional[str] = None
    timeout_seconds: float = 10.0


@dataclass
class OverrideRecord:
    key: str
    source: str
    old: Any
    new: Any


@dataclass
class VaultSyncConfig:
    poller: PollerSettings = field(default_factory=PollerSettings)
    reconcile: ReconcileSettings = field(default_factory=ReconcileSettings)
    countdown: CountdownSettings = field(default_factory=CountdownSettings)
    ledger: LedgerSettings = field(default_factory=LedgerSettings)
    overrides: List[OverrideRecord] = field(default_factory=list)
    loaded_files: List[str] = field(default_factory=list)

    @classmethod
    def load(
        cls,
        settings_path: Optional[str] = None,
        env_prefix: str = "VAULT__",
        dotenv_path: Optional[str] = None,
    ) -> "VaultSyncConfig":
        layers: List[Tuple[Dict[str, Any], str]] = []
        loaded_files: List[str] = []

        if settings_path and os.path.exists(settings_path):
            with open(settings_path, "r", encoding="utf-8") as f:
                layers.append((toml.load(f), os.path.basename(settings_path)))
            loaded_files.append(os.path.basename(settings_path))

        if dotenv_path:
            load_dotenv(dotenv_path)
            loaded_files.append(os.path.basename(dotenv_path))

        env_overrides = _load_env_overrides(env_prefix)
        if env_overrides:
            layers.append((env_overrides, "env"))

        merged: Dict[str, Any] = {}
        overrides: List[OverrideRecord] = []
        for payload, source in layers:
            _merge_dicts(merged, payload, source, overrides)

        cfg = cls(
            poller=_build_poller(merged),
            reconcile=_build_reconcile(merged),
            countdown=_build_countdown(merged),
            ledger=_build_ledger(merged),
            overrides=overrides,
            loaded_files=loaded_files,
        )
        cfg.log_summary()
        return cfg

    def grace_seconds_for(self, kind: Optional[OperationKind]) -> float:
        cycles = self.reconcile.grace_cycles_by_kind.get(kind, self.reconcile.grace_cycles)
        return cycles * self.poller.interval_seconds

    def log_summary(self) -> None:
        logger.info(f"CONFIG | loaded files: {', '.join(self.loaded_files) or '<none>'}")
        for o in self.overrides:
            logger.info(f"CONFIG | override {o.key} from {o.source} (old={o.old} -> new={o.new})")
        logger.info(
            f"CONFIG | poller interval={self.poller.interval_seconds}s token={self.poller.token_address or '<native>'}"
        )
        per_kind = ", ".join(f"{k.value}={v}" for k, v in sorted(
            self.reconcile.grace_cycles_by_kind.items(), key=lambda kv: kv[0].value
        ))
        logger.info(
            f"CONFIG | grace_cycles={self.reconcile.grace_cycles} per_kind=[{per_kind or 'default'}] "
            f"clock_skew={self.reconcile.clock_skew_seconds}s"
        )
        logger.info(f"CONFIG | countdown tick={self.countdown.tick_seconds}s ledger={self.ledger.base_url or '<none>'}")


def _merge_dicts(dst: Dict[str, Any], src: Dict[str, Any], source: str, overrides: List[OverrideRecord], prefix: str = "") -> None:
    """Deep-merge ``src`` into ``dst``; changed leaves are recorded as overrides."""
    for key, value in src.items():
        dotted = f"{prefix}.{key}" if prefix else key
        existing = dst.get(key)
        if isinstance(value, dict):
            if isinstance(existing, dict):
                _merge_dicts(existing, value, source, overrides, dotted)
            else:
                dst[key] = dict(value)
            continue
        if key in dst and existing != value:
            overrides.append(OverrideRecord(dotted, source, existing, value))
        dst[key] = value


def _load_env_overrides(prefix: str) -> Dict[str, Any]:
    """``VAULT__RECONCILE__GRACE_CYCLES_BY_KIND__WITHDRAW=1`` -> nested section dict."""
    tree: Dict[str, Any] = {}
    for name, raw in os.environ.items():
        if name.startswith(prefix):
            _assign_env_override(tree, name[len(prefix):].lower().split("__"), raw)
    return tree


def _assign_env_override(dst: Dict[str, Any], path_parts: List[str], raw_val: str) -> None:
    *sections, leaf = path_parts
    node = dst
    for part in sections:
        child = node.get(part)
        if not isinstance(child, dict):
            child = node[part] = {}
        node = child
    node[leaf] = _coerce_env_value(raw_val)


def _coerce_env_value(val: str) -> Any:
    # Empty clears an optional setting, e.g. token_address back to the native balance.
    text = val.strip()
    if not text:
        return None
    if text.lower() in ("true", "false"):
        return text.lower() == "true"
    for parse in (int, float):
        try:
            return parse(text)
        except ValueError:
            continue
    return text


def _build_poller(cfg: Dict[str, Any]) -> PollerSettings:
    section = cfg.get("poller", {}) or {}
    interval = _to_float(section.get("interval_seconds", 10.0), "poller.interval_seconds")
    if interval <= 0:
        raise ValueError(f"poller.interval_seconds must be > 0, got {interval}")
    return PollerSettings(
        interval_seconds=interval,
        token_address=section.get("token_address") or None,
    )


def _build_reconcile(cfg: Dict[str, Any]) -> ReconcileSettings:
    section = cfg.get("reconcile", {}) or {}
    grace_cycles = _to_cycles(section.get("grace_cycles", 3), "reconcile.grace_cycles")

    by_kind: Dict[OperationKind, int] = {}
    for raw_kind, raw_cycles in (section.get("grace_cycles_by_kind", {}) or {}).items():
        try:
            kind = OperationKind(str(raw_kind).upper())
        except ValueError as exc:
            valid = ", ".join(k.value.lower() for k in OperationKind)
            raise ValueError(f"Unknown operation kind '{raw_kind}' in reconcile.grace_cycles_by_kind; use one of {valid}") from exc
        by_kind[kind] = _to_cycles(raw_cycles, f"reconcile.grace_cycles_by_kind.{raw_kind}")

    skew = _to_float(section.get("clock_skew_seconds", 60.0), "reconcile.clock_skew_seconds")
    if skew < 0:
        raise ValueError("reconcile.clock_skew_seconds must be >= 0")
    return ReconcileSettings(grace_cycles=grace_cycles, grace_cycles_by_kind=by_kind, clock_skew_seconds=skew)


def _build_countdown(cfg: Dict[str, Any]) -> CountdownSettings:
    section = cfg.get("countdown", {}) or {}
    tick = _to_float(section.get("tick_seconds", 1.0), "countdown.tick_seconds")
    if tick <= 0:
        raise ValueError("countdown.tick_seconds must be > 0")
    return CountdownSettings(tick_seconds=tick)


def _build_ledger(cfg: Dict[str, Any]) -> LedgerSettings:
    section = cfg.get("ledger", {}) or {}
    return LedgerSettings(
        base_url=section.get("base_url") or None,
        timeout_seconds=_to_float(section.get("timeout_seconds", 10.0), "ledger.timeout_seconds"),
    )


def _to_cycles(value: Any, label: str) -> int:
    try:
        cycles = int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid integer value for {label}: {value}") from exc
    if cycles < 1:
        raise ValueError(f"{label} must be >= 1, got {cycles}")
    return cycles


def _to_float(value: Any, label: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid number for {label}: {value}") from exc
