"""YAML/dict config loader for pii-masker.

Supports loading from a YAML file or a plain dict (for embedding
in a larger application config).

Example YAML:

    pii_masker:
      enabled_types: [EMAIL, PHONE, IBAN, PERSON]
      ner_enabled_types: [PERSON]
      confidence_thresholds:
        PERSON: 0.6
      allowlist_terms:
        - Support Team
      denylist_patterns:
        - "(?i)project\\s+falcon"
      custom_id_patterns:
        - name: order
          pattern: "ORD-\\d{6}"
          type: CASE_ID
      reuse_ids_for_repeated_pii: true
      enable_leak_scan: true
      inference_timeout: 5
"""

from __future__ import annotations
from pathlib import Path
from typing import Any, Mapping

from .exceptions import ConfigurationError
from .policy import Policy, merge_policy

DEFAULT_INFERENCE_TIMEOUT = 10.0

# Runtime options that live beside the policy, not in it
_RUNTIME_KEYS = {"inference_timeout"}


def _section(data: Mapping[str, Any] | None) -> dict[str, Any]:
    data = dict(data or {})
    # Support nested under "pii_masker" key or flat
    if "pii_masker" in data:
        data = dict(data["pii_masker"] or {})
    return data


def load_settings(data: Mapping[str, Any] | None) -> tuple[Policy, dict[str, Any]]:
    """Split a config dict into a Policy and runtime options."""
    section = _section(data)
    runtime = {k: section.pop(k) for k in list(section) if k in _RUNTIME_KEYS}

    timeout = runtime.get("inference_timeout", DEFAULT_INFERENCE_TIMEOUT)
    try:
        timeout = float(timeout)
    except (TypeError, ValueError):
        raise ConfigurationError(f"inference_timeout must be a number, got {timeout!r}") from None
    if timeout <= 0:
        raise ConfigurationError("inference_timeout must be positive")

    return merge_policy(section), {"inference_timeout": timeout}


def load_config(data: Mapping[str, Any] | None) -> Policy:
    """Normalize a config dict (from YAML or inline) into a Policy."""
    policy, _ = load_settings(data)
    return policy


def load_from_yaml(path: str | Path) -> tuple[Policy, dict[str, Any]]:
    """Load policy and runtime options from a YAML file."""
    import yaml

    with open(path, encoding="utf-8") as f:
        return load_settings(yaml.safe_load(f))
