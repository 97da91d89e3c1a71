"""
config.py - Configuration for the portfolio ledger

Defaults live on LedgerConfig. They can be overridden from a JSON file
(load_config) or from PROPLEDGER_* environment variables (from_env):

    PROPLEDGER_STARTING_CASH_MMK
    PROPLEDGER_ACTIVITY_LOG_LIMIT
    PROPLEDGER_COMPANY_VALUE_MMK
    PROPLEDGER_COMPANY_SHARES
    PROPLEDGER_STORAGE_DIR
    PROPLEDGER_LOG_LEVEL
"""

from __future__ import annotations
from dataclasses import dataclass, fields, replace
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional
import json
import logging
import os

from .core import (
    ACTIVITY_LOG_LIMIT, DEFAULT_COMPANY_SHARES, DEFAULT_COMPANY_VALUE_MMK,
    STARTING_CASH_MMK, RecordValidationError, to_decimal,
)


ENV_PREFIX = "PROPLEDGER_"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@dataclass(frozen=True, slots=True)
class LedgerConfig:
    """Tunable parameters of the ledger. Immutable; use with_overrides()."""
    starting_cash_mmk: Decimal = STARTING_CASH_MMK
    activity_log_limit: int = ACTIVITY_LOG_LIMIT
    company_value_mmk: Decimal = DEFAULT_COMPANY_VALUE_MMK
    company_shares: int = DEFAULT_COMPANY_SHARES
    storage_dir: str = "data"
    log_level: str = "INFO"

    def __post_init__(self):
        if not isinstance(self.starting_cash_mmk, Decimal):
            object.__setattr__(self, 'starting_cash_mmk', to_decimal(self.starting_cash_mmk))
        if not isinstance(self.company_value_mmk, Decimal):
            object.__setattr__(self, 'company_value_mmk', to_decimal(self.company_value_mmk))
        for name in ('activity_log_limit', 'company_shares'):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool):
                object.__setattr__(self, name, int(to_decimal(value)))
        if self.starting_cash_mmk < 0:
            raise RecordValidationError("starting_cash_mmk cannot be negative")
        if self.activity_log_limit < 1:
            raise RecordValidationError("activity_log_limit must be at least 1")

    def with_overrides(self, overrides: Mapping[str, Any]) -> LedgerConfig:
        """Return a copy with known keys replaced. Unknown keys are rejected."""
        known = {f.name for f in fields(self)}
        unknown = set(overrides) - known
        if unknown:
            raise RecordValidationError(f"Unknown configuration keys: {sorted(unknown)}")
        return replace(self, **dict(overrides))

    @classmethod
    def from_env(cls, base: Optional[LedgerConfig] = None) -> LedgerConfig:
        """Apply PROPLEDGER_* environment variables over base (or the defaults)."""
        config = base or cls()
        overrides: Dict[str, Any] = {}
        for f in fields(cls):
            raw = os.getenv(ENV_PREFIX + f.name.upper())
            if raw is not None:
                overrides[f.name] = raw
        return config.with_overrides(overrides) if overrides else config


def load_config(path: Optional[str] = None) -> LedgerConfig:
    """
    Load configuration from a JSON file, then apply environment overrides.

    The path defaults to $PROPLEDGER_CONFIG_PATH. A missing file means
    defaults; a malformed file raises RecordValidationError.
    """
    path = path or os.getenv(ENV_PREFIX + "CONFIG_PATH")
    config = LedgerConfig()
    if path:
        try:
            with open(path, "r") as f:
                data = json.load(f)
        except FileNotFoundError:
            data = {}
        except json.JSONDecodeError as e:
            raise RecordValidationError(f"Config file {path} is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise RecordValidationError(f"Config file {path} must contain a JSON object")
        config = config.with_overrides(data)
    return LedgerConfig.from_env(config)


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging with the standard ledger format."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
    )
