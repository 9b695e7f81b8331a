"""YAML configuration loading for mintertx."""

from __future__ import annotations
import logging
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from mintertx.constants import DEFAULT_COIN, DEFAULT_FEE_PRICE

logger = logging.getLogger(__name__)


@dataclass
class TxDefaultsConfig:
    fee_price: int = DEFAULT_FEE_PRICE
    coin: str = DEFAULT_COIN


@dataclass
class MinterTxConfig:
    tx: TxDefaultsConfig = field(default_factory=TxDefaultsConfig)
    log_level: str = "INFO"


def load_config(path: Path) -> MinterTxConfig:
    """Load configuration from a YAML file."""
    with open(path) as f:
        raw = yaml.safe_load(f) or {}

    config = MinterTxConfig()

    if "tx" in raw:
        t = raw["tx"] or {}
        fee_price = t.get("fee_price", DEFAULT_FEE_PRICE)
        if not isinstance(fee_price, int) or fee_price < 0:
            raise ValueError(f"tx.fee_price must be a non-negative integer: {fee_price!r}")
        config.tx = TxDefaultsConfig(
            fee_price=fee_price,
            coin=str(t.get("coin", DEFAULT_COIN)),
        )

    config.log_level = raw.get("log_level", "INFO")
    logger.debug("Loaded config from %s", path)
    return config
