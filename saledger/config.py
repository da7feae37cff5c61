"""
saledger/config.py

Ledger configuration.

Precedence, lowest to highest:
    defaults  <  YAML file  <  SALEDGER_* environment variables

YAML layout (every key optional):

    difficulty: 2
    audit_interval: 30
    max_seal_attempts: 5000000
    seal_timeout: 60
    journal: .saledger/chain.jsonl
    outbox: .saledger/outbox.jsonl
    log_level: INFO
"""

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml

from saledger.core.exceptions import ValidationError


ENV_PREFIX = "SALEDGER_"


@dataclass(frozen=True)
class LedgerConfig:
    difficulty:        int             = 2
    audit_interval:    float           = 30.0
    max_seal_attempts: Optional[int]   = None
    seal_timeout:      Optional[float] = None
    journal:           Optional[str]   = None
    outbox:            Optional[str]   = None
    log_level:         str             = "INFO"

    def __post_init__(self) -> None:
        if self.difficulty < 0:
            raise ValidationError(f"difficulty must be >= 0, got {self.difficulty}")
        if self.audit_interval <= 0:
            raise ValidationError(f"audit_interval must be > 0, got {self.audit_interval}")
        if self.max_seal_attempts is not None and self.max_seal_attempts <= 0:
            raise ValidationError("max_seal_attempts must be > 0")
        if self.seal_timeout is not None and self.seal_timeout <= 0:
            raise ValidationError("seal_timeout must be > 0")

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "LedgerConfig":
        known   = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValidationError(
                "unknown configuration keys", {"keys": ",".join(sorted(unknown))}
            )
        return cls(**_coerce(dict(data)))

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "LedgerConfig":
        """Load configuration from a YAML file."""
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValidationError(f"config file {path} must contain a mapping")
        return cls.from_mapping(data)

    @classmethod
    def load(
        cls,
        path: Optional[Union[str, Path]] = None,
        env:  Optional[Mapping[str, str]] = None,
    ) -> "LedgerConfig":
        """Defaults, then the YAML file (if any), then the environment."""
        config = cls.from_yaml(path) if path is not None else cls()
        return config.with_env(os.environ if env is None else env)

    def with_env(self, env: Mapping[str, str]) -> "LedgerConfig":
        overrides: Dict[str, Any] = {}
        for f in fields(self):
            value = env.get(ENV_PREFIX + f.name.upper())
            if value is not None and value != "":
                overrides[f.name] = value
        if not overrides:
            return self
        return replace(self, **_coerce(overrides))

    def ledger_kwargs(self) -> Dict[str, Any]:
        """Keyword arguments for Ledger(...) / Ledger.open(...)."""
        return {
            "difficulty":   self.difficulty,
            "max_attempts": self.max_seal_attempts,
            "seal_timeout": self.seal_timeout,
        }


_CASTS = {
    "difficulty":        int,
    "audit_interval":    float,
    "max_seal_attempts": int,
    "seal_timeout":      float,
    "journal":           str,
    "outbox":            str,
    "log_level":         str,
}


def _coerce(data: Dict[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for key, value in data.items():
        if value is None:
            out[key] = None
            continue
        try:
            out[key] = _CASTS[key](value)
        except (TypeError, ValueError) as exc:
            raise ValidationError(
                f"invalid value for {key}: {value!r}"
            ) from exc
    return out
