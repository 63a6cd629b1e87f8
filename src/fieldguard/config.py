"""YAML/dict config loader for fieldguard.

Supports loading from a YAML file or a plain dict (for embedding
in a larger host config).

Example YAML:

    fieldguard:
      min_length: 8
      max_length: 2000
      cache_ttl: 300
      queue_capacity: 100
      batch_size: 10
      sweep_interval: 30
      debounce: 0.5
      skip_types:
        - IP_ADDRESS
      allow_list:
        - support@example.com
      api:
        base_url: https://api.pasteproof.com
        api_key: pk_live_...
        timeout: 10
      patterns:
        - id: emp
          name: Employee ID
          pattern: EMP-\\d{6}
          pattern_type: EMPLOYEE_ID
"""

from __future__ import annotations
from pathlib import Path
from typing import Any, Iterable

from .cache import DEFAULT_MAX_ENTRIES, DEFAULT_TTL
from .engine import Engine, EngineConfig
from .events import DEFAULT_BATCH_SIZE, DEFAULT_CAPACITY
from .gate import GateConfig
from .remote import DEFAULT_BASE_URL, DEFAULT_TIMEOUT, HttpClassifier, HttpTelemetrySink


def load_config(data: dict[str, Any] | None) -> dict[str, Any]:
    """Normalize a config dict (from YAML or inline)."""
    data = data or {}
    # Support nested under "fieldguard" key or flat
    if "fieldguard" in data:
        data = data["fieldguard"] or {}

    gate_defaults = GateConfig()
    api = data.get("api") or {}
    return {
        "min_length": int(data.get("min_length", gate_defaults.min_length)),
        "max_length": int(data.get("max_length", gate_defaults.max_length)),
        "cache_ttl": float(data.get("cache_ttl", DEFAULT_TTL)),
        "cache_size": int(data.get("cache_size", DEFAULT_MAX_ENTRIES)),
        "queue_capacity": int(data.get("queue_capacity", DEFAULT_CAPACITY)),
        "batch_size": int(data.get("batch_size", DEFAULT_BATCH_SIZE)),
        "sweep_interval": float(data.get("sweep_interval", 30.0)),
        "debounce": float(data.get("debounce", 0.5)),
        "skip_types": {str(t).upper() for t in data.get("skip_types") or []},
        "allow_list": set(data.get("allow_list") or []),
        "api_base_url": api.get("base_url"),
        "api_key": api.get("api_key"),
        "api_timeout": float(api.get("timeout", DEFAULT_TIMEOUT)),
        "patterns": list(data.get("patterns") or []),
    }


def load_from_yaml(path: str | Path) -> dict[str, Any]:
    """Load config from a YAML file."""
    import yaml
    with open(path) as f:
        return load_config(yaml.safe_load(f))


def create_engine(
    config: dict[str, Any],
    patterns: Iterable[dict[str, Any]] = (),
) -> Engine:
    """Create a fully configured engine from a config dict.

    Extra patterns are registered together with the config's own; the
    outcome is on ``engine.registration``.
    """
    cfg = load_config(config) if "api_base_url" not in config else config

    engine_config = EngineConfig(
        gate=GateConfig(min_length=cfg["min_length"], max_length=cfg["max_length"]),
        cache_ttl=cfg["cache_ttl"],
        cache_size=cfg["cache_size"],
        queue_capacity=cfg["queue_capacity"],
        batch_size=cfg["batch_size"],
        sweep_interval=cfg["sweep_interval"],
        debounce=cfg["debounce"],
        skip_types=cfg["skip_types"],
        allow_list=cfg["allow_list"],
    )

    classifier = sink = None
    if cfg["api_base_url"] or cfg["api_key"]:
        base_url = cfg["api_base_url"] or DEFAULT_BASE_URL
        classifier = HttpClassifier(base_url, cfg["api_key"] or "", timeout=cfg["api_timeout"])
        sink = HttpTelemetrySink(base_url, cfg["api_key"] or "", timeout=cfg["api_timeout"])

    engine = Engine(engine_config, classifier=classifier, sink=sink)
    combined = [*cfg["patterns"], *patterns]
    if combined:
        engine.register_custom_patterns(combined)
    return engine
