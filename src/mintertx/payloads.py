"""Payload schemas for every Minter transaction type, and the type registry.

Each payload is a Record whose encoded bytes go into the transaction's
``payload`` field. The registry maps the one-byte type code to the schema
used to build or decode that region.
"""

from __future__ import annotations
from typing import Any, Union

from mintertx.constants import (
    ADDRESS_SIZE,
    CHECK_PROOF_SIZE,
    COIN_SYMBOL_SIZE,
    INT_FIELD_SIZE,
    PUBKEY_SIZE,
    TxType,
)
from mintertx.exceptions import DecodeError, SchemaError, UnknownTypeError
from mintertx.fields import FieldSpec, Record
from mintertx.helpers import (
    address_to_bytes,
    check_to_bytes,
    coin_to_bytes,
    pubkey_to_bytes,
)


def _int(name: str) -> FieldSpec:
    return FieldSpec(name, length=INT_FIELD_SIZE, allow_less=True)


def _coin(name: str) -> FieldSpec:
    return FieldSpec(name, length=COIN_SYMBOL_SIZE, parse=coin_to_bytes)


def _address(name: str, allow_zero: bool = False) -> FieldSpec:
    return FieldSpec(name, length=ADDRESS_SIZE, allow_zero=allow_zero,
                     parse=address_to_bytes)


def _pubkey(name: str) -> FieldSpec:
    return FieldSpec(name, length=PUBKEY_SIZE, parse=pubkey_to_bytes)


class Payload(Record):
    """Base class for transaction payloads."""

    TYPE: int = 0


class SendPayload(Payload):
    TYPE = TxType.SEND
    FIELDS = (
        _coin("coin"),
        _address("to", allow_zero=True),
        _int("value"),
    )


class MultisendPayload(Payload):
    TYPE = TxType.MULTISEND
    FIELDS = (
        FieldSpec("list", element=SendPayload),
    )


class SellCoinPayload(Payload):
    TYPE = TxType.SELL_COIN
    FIELDS = (
        _coin("coin_to_sell"),
        _int("value_to_sell"),
        _coin("coin_to_buy"),
    )


class SellAllCoinPayload(Payload):
    TYPE = TxType.SELL_ALL_COIN
    FIELDS = (
        _coin("coin_to_sell"),
        _coin("coin_to_buy"),
    )


class BuyCoinPayload(Payload):
    TYPE = TxType.BUY_COIN
    FIELDS = (
        _coin("coin_to_buy"),
        _int("value_to_buy"),
        _coin("coin_to_sell"),
    )


class CreateCoinPayload(Payload):
    TYPE = TxType.CREATE_COIN
    FIELDS = (
        FieldSpec("name", allow_zero=True),
        _coin("symbol"),
        _int("initial_amount"),
        _int("initial_reserve"),
        _int("constant_reserve_ratio"),
    )


class DeclareCandidacyPayload(Payload):
    TYPE = TxType.DECLARE_CANDIDACY
    FIELDS = (
        _address("address"),
        _pubkey("pub_key"),
        _int("commission"),
        _coin("coin"),
        _int("stake"),
    )


class EditCandidatePayload(Payload):
    TYPE = TxType.EDIT_CANDIDATE
    FIELDS = (
        _pubkey("pub_key"),
        _address("reward_address"),
        _address("owner_address"),
    )


class SetCandidateOnPayload(Payload):
    TYPE = TxType.SET_CANDIDATE_ON
    FIELDS = (_pubkey("pub_key"),)


class SetCandidateOffPayload(Payload):
    TYPE = TxType.SET_CANDIDATE_OFF
    FIELDS = (_pubkey("pub_key"),)


class DelegatePayload(Payload):
    TYPE = TxType.DELEGATE
    FIELDS = (
        _pubkey("pub_key"),
        _coin("coin"),
        _int("stake"),
    )


class UnbondPayload(Payload):
    TYPE = TxType.UNBOND
    FIELDS = (
        _pubkey("pub_key"),
        _coin("coin"),
        _int("value"),
    )


class RedeemCheckPayload(Payload):
    TYPE = TxType.REDEEM_CHECK
    FIELDS = (
        FieldSpec("raw_check", parse=check_to_bytes),
        FieldSpec("proof", length=CHECK_PROOF_SIZE, allow_zero=True),
    )


class CreateMultisigPayload(Payload):
    TYPE = TxType.CREATE_MULTISIG
    FIELDS = (
        _int("threshold"),
        FieldSpec("weights", element=_int("weight")),
        FieldSpec("addresses", element=_address("address")),
    )


PAYLOAD_SCHEMAS: dict[int, type[Payload]] = {
    schema.TYPE: schema
    for schema in (
        SendPayload,
        SellCoinPayload,
        SellAllCoinPayload,
        BuyCoinPayload,
        CreateCoinPayload,
        DeclareCandidacyPayload,
        DelegatePayload,
        UnbondPayload,
        RedeemCheckPayload,
        SetCandidateOnPayload,
        SetCandidateOffPayload,
        CreateMultisigPayload,
        MultisendPayload,
        EditCandidatePayload,
    )
}


def normalize_type(type_code: Union[int, bytes, str]) -> int:
    """Normalize a type given as int, one-byte bytes, hex string or TxType name."""
    if isinstance(type_code, bool):
        raise UnknownTypeError(type_code)
    if isinstance(type_code, int):
        return type_code
    if isinstance(type_code, (bytes, bytearray)):
        if len(type_code) > 1:
            raise UnknownTypeError(type_code)
        return int.from_bytes(type_code, "big")
    if isinstance(type_code, str):
        if type_code[:2].lower() == "0x":
            try:
                return int(type_code, 16)
            except ValueError:
                raise UnknownTypeError(type_code) from None
        value = getattr(TxType, type_code.upper(), None)
        if isinstance(value, int):
            return value
    raise UnknownTypeError(type_code)


def resolve(type_code: Union[int, bytes, str]) -> type[Payload]:
    """Return the payload schema registered for a transaction type."""
    code = normalize_type(type_code)
    try:
        return PAYLOAD_SCHEMAS[code]
    except KeyError:
        raise UnknownTypeError(type_code) from None


def build_payload(type_code: Union[int, bytes, str], data: Any) -> Payload:
    """Build a payload record for ``type_code``.

    ``data`` may be a payload instance of the right schema, a mapping of
    field values, or the payload's encoded bytes.
    """
    schema = resolve(type_code)
    if isinstance(data, Payload):
        if not isinstance(data, schema):
            raise SchemaError(
                f"{type(data).__name__} does not match transaction type "
                f"{schema.TYPE:#04x} ({schema.__name__})"
            )
        return data
    if isinstance(data, (bytes, bytearray, memoryview)):
        return decode_payload(type_code, bytes(data))
    if data is None:
        raise SchemaError(f"{schema.__name__} requires payload data")
    return schema(data)


def decode_payload(type_code: Union[int, bytes, str], data: bytes) -> Payload:
    """Decode a payload region, raising DecodeError if it does not round-trip."""
    payload = resolve(type_code).deserialize(data)
    if payload.serialize() != bytes(data):
        raise DecodeError(f"{type(payload).__name__} payload is not canonical")
    return payload
