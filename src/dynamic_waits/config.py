"""Defaults and file/env loading for wait policies.

The engine only ever sees explicit ``PollPolicy`` values; this module is where
those values come from when a test suite wants them in a JSON file.
"""
from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import jsonschema

from .adaptive import AdaptiveTimeoutPolicy, ReliabilityTuning
from .errors import ConfigFileError, ConfigurationError
from .network import PROFILES, get_profile
from .policy import PollPolicy

ENV_PREFIX = "DYNAMIC_WAITS_"


class Timeouts:
    """Timeout constants (seconds) for common wait scenarios."""

    SHORT_WAIT = 5  # Element presence, quick checks
    MEDIUM_WAIT = 10  # Dynamic loading, fluent waits
    LONG_WAIT = 30  # Page loads on slow networks
    POLL = 0.5  # Default polling cadence
    JS_SETTLE = 1  # Time for the DOM to settle after a JS action


POLICY_CONFIG_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["policies"],
    "additionalProperties": False,
    "properties": {
        "policies": {
            "type": "object",
            "minProperties": 1,
            "additionalProperties": {
                "type": "object",
                "additionalProperties": False,
                "properties": {
                    "type": {"enum": ["fixed", "adaptive"]},
                    "timeout": {"type": "number", "exclusiveMinimum": 0},
                    "poll_interval": {"type": "number", "exclusiveMinimum": 0},
                    "backoff_factor": {"type": "number", "minimum": 1},
                    "max_interval": {"type": "number", "exclusiveMinimum": 0},
                    "ignore": {"type": "array", "items": {"type": "string", "minLength": 1}},
                    "base_timeout": {"type": "number", "exclusiveMinimum": 0},
                    "profile": {"enum": sorted(PROFILES)},
                    "reliability": {"type": "number", "exclusiveMinimum": 0},
                    "cap_multiple": {"type": "number", "minimum": 1},
                    "smoothing": {"type": "number", "minimum": 0, "maximum": 1},
                },
                "if": {"properties": {"type": {"const": "adaptive"}}, "required": ["type"]},
                "then": {"required": ["base_timeout"]},
                "else": {"required": ["timeout"]},
            },
        }
    },
}

AnyPolicy = Union[PollPolicy, AdaptiveTimeoutPolicy]


@dataclass
class PolicyConfig:
    policies: Dict[str, AnyPolicy] = field(default_factory=dict)
    source: Optional[Path] = None

    def get(self, name: str) -> AnyPolicy:
        if name not in self.policies:
            raise ConfigurationError(f"no policy named {name!r} in {self.source or 'config'}")
        return self.policies[name]

    def poll_policy(self, name: str) -> PollPolicy:
        policy = self.get(name)
        if isinstance(policy, AdaptiveTimeoutPolicy):
            return policy.to_poll_policy()
        return policy


def _build_policy(entry: Mapping[str, Any]) -> AnyPolicy:
    ignored = frozenset(entry.get("ignore", []))
    if entry.get("type") == "adaptive":
        tuning = ReliabilityTuning(smoothing=entry["smoothing"]) if "smoothing" in entry else ReliabilityTuning()
        return AdaptiveTimeoutPolicy(
            base_timeout=entry["base_timeout"],
            profile=get_profile(entry.get("profile", "fast")),
            reliability=entry.get("reliability", 1.0),
            cap_multiple=entry.get("cap_multiple", 5.0),
            poll_interval=entry.get("poll_interval", Timeouts.POLL),
            tuning=tuning,
            ignored_failure_kinds=ignored,
            backoff_factor=entry.get("backoff_factor", 1.0),
        )
    return PollPolicy(
        timeout=entry["timeout"],
        poll_interval=entry.get("poll_interval", Timeouts.POLL),
        ignored_failure_kinds=ignored,
        backoff_factor=entry.get("backoff_factor", 1.0),
        max_interval=entry.get("max_interval"),
    )


def parse_policy_config(data: Mapping[str, Any], source: Optional[Path] = None) -> PolicyConfig:
    try:
        jsonschema.validate(data, POLICY_CONFIG_SCHEMA)
    except jsonschema.ValidationError as exc:
        where = "/".join(str(p) for p in exc.absolute_path) or "<root>"
        raise ConfigFileError(f"invalid policy config at {where}: {exc.message}") from exc
    policies = {name: _build_policy(entry) for name, entry in data["policies"].items()}
    return PolicyConfig(policies=policies, source=source)


def load_policy_config(path: Union[str, Path]) -> PolicyConfig:
    path = Path(path)
    try:
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError as exc:
        raise ConfigFileError(f"policy config not found: {path}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigFileError(f"policy config is not valid JSON: {path}: {exc}") from exc
    return parse_policy_config(data, source=path)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from exc


def policy_from_env(prefix: str = ENV_PREFIX) -> PollPolicy:
    return PollPolicy(
        timeout=_env_float(f"{prefix}TIMEOUT", Timeouts.MEDIUM_WAIT),
        poll_interval=_env_float(f"{prefix}POLL_INTERVAL", Timeouts.POLL),
        backoff_factor=_env_float(f"{prefix}BACKOFF", 1.0),
    )
