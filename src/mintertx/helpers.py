"""Conversions between human-entered values and raw payload fields."""

from __future__ import annotations
from decimal import Decimal, InvalidOperation
from typing import Union

from mintertx.constants import (
    ADDRESS_PREFIX,
    ADDRESS_SIZE,
    CHECK_PREFIX,
    COIN_SYMBOL_SIZE,
    PIP_PER_COIN,
    PUBKEY_PREFIX,
    PUBKEY_SIZE,
)
from mintertx.exceptions import SchemaError


def strip_prefix(value: str, prefixes: tuple[str, ...]) -> str:
    for prefix in prefixes:
        if value[:2].lower() == prefix.lower():
            return value[2:]
    return value


def address_to_bytes(address: str) -> bytes:
    """Convert an ``Mx``/``0x``-prefixed or bare hex address to 20 raw bytes."""
    try:
        raw = bytes.fromhex(strip_prefix(address, (ADDRESS_PREFIX, "0x")))
    except ValueError as e:
        raise SchemaError(f"Invalid address: {address!r}") from e
    if len(raw) != ADDRESS_SIZE:
        raise SchemaError(f"Address must be {ADDRESS_SIZE} bytes, got {len(raw)}")
    return raw


def bytes_to_address(addr_bytes: bytes) -> str:
    """Convert 20 raw bytes to an ``Mx``-prefixed address."""
    if len(addr_bytes) != ADDRESS_SIZE:
        raise SchemaError(f"Address must be {ADDRESS_SIZE} bytes, got {len(addr_bytes)}")
    return ADDRESS_PREFIX + addr_bytes.hex()


def pubkey_to_bytes(pubkey: str) -> bytes:
    """Convert an ``Mp``-prefixed validator public key to 32 raw bytes."""
    try:
        raw = bytes.fromhex(strip_prefix(pubkey, (PUBKEY_PREFIX, "0x")))
    except ValueError as e:
        raise SchemaError(f"Invalid public key: {pubkey!r}") from e
    if len(raw) != PUBKEY_SIZE:
        raise SchemaError(f"Public key must be {PUBKEY_SIZE} bytes, got {len(raw)}")
    return raw


def check_to_bytes(check: str) -> bytes:
    """Convert an ``Mc``-prefixed redeemable check to raw bytes."""
    try:
        return bytes.fromhex(strip_prefix(check, (CHECK_PREFIX, "0x")))
    except ValueError as e:
        raise SchemaError(f"Invalid check: {check!r}") from e


def coin_to_bytes(symbol: str) -> bytes:
    """Encode a coin symbol as a 10-byte zero-padded field."""
    try:
        raw = symbol.encode("ascii")
    except UnicodeEncodeError as e:
        raise SchemaError(f"Coin symbol must be ASCII: {symbol!r}") from e
    if not raw or len(raw) > COIN_SYMBOL_SIZE:
        raise SchemaError(
            f"Coin symbol must be 1-{COIN_SYMBOL_SIZE} characters: {symbol!r}"
        )
    return raw.ljust(COIN_SYMBOL_SIZE, b"\x00")


def bytes_to_coin(raw: bytes) -> str:
    return raw.rstrip(b"\x00").decode("ascii")


def to_pip(amount: Union[int, float, str, Decimal]) -> int:
    """Convert a whole-coin amount to pip (10^-18 coin) using Decimal for precision."""
    try:
        pip = Decimal(str(amount)) * PIP_PER_COIN
    except InvalidOperation as e:
        raise SchemaError(f"Invalid amount: {amount!r}") from e
    if pip != pip.to_integral_value():
        raise SchemaError(f"Amount has more precision than 1 pip: {amount}")
    if pip < 0:
        raise SchemaError(f"Amount must not be negative: {amount}")
    return int(pip)


def from_pip(pip: int) -> Decimal:
    return Decimal(pip) / PIP_PER_COIN
