"""Minter transaction envelope.

A transaction is stored as:
[nonce, fee_price, type_code, payload, extra_data, service_data, v, r, s]

``payload`` holds the encoded payload record selected by ``type_code``;
the envelope never interprets it except through the payload registry.
The signing digest covers the first six fields only, so the signature
never signs itself. The full digest covers all nine fields and identifies
a signed transaction.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Union

import rlp

from mintertx.constants import (
    DEFAULT_V,
    INT_FIELD_SIZE,
    SIGNATURE_PART_SIZE,
    SIGNED_FIELD_COUNT,
    TX_PREFIX,
)
from mintertx.crypto import (
    derive_address,
    keccak,
    recover_public_key,
    sign_digest,
)
from mintertx.exceptions import DecodeError, SignatureError, UnknownTypeError
from mintertx.fields import FieldSpec, Record
from mintertx.helpers import bytes_to_address, strip_prefix
from mintertx.payloads import Payload, build_payload, decode_payload

logger = logging.getLogger(__name__)

INVALID_SIGNATURE = "invalid-signature"
UNKNOWN_TYPE = "unknown-type"
MALFORMED_PAYLOAD = "malformed-payload"


@dataclass
class ValidationResult:
    """Outcome of Transaction.validate(): the list of violated checks."""

    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def __bool__(self) -> bool:
        return self.ok

    def __str__(self) -> str:
        return " ".join(self.errors)


class Transaction(Record):
    """A signed or unsigned Minter transaction."""

    FIELDS = (
        FieldSpec("nonce", length=INT_FIELD_SIZE, allow_less=True),
        FieldSpec("fee_price", alias="gas_price", length=INT_FIELD_SIZE,
                  allow_less=True),
        FieldSpec("type_code", alias="type", length=1, allow_less=True),
        FieldSpec("payload", alias="data", allow_zero=True),
        FieldSpec("extra_data", alias="memo", allow_zero=True),
        FieldSpec("service_data", allow_zero=True),
        FieldSpec("v", length=1, allow_less=True, allow_zero=True,
                  default=DEFAULT_V, mutable=True),
        FieldSpec("r", length=SIGNATURE_PART_SIZE, allow_less=True,
                  allow_zero=True, mutable=True),
        FieldSpec("s", length=SIGNATURE_PART_SIZE, allow_less=True,
                  allow_zero=True, mutable=True),
    )

    SIGNATURE_FIELDS = ("v", "r", "s")

    # Sender cache, filled on first successful recovery
    _sender_public_key: Optional[bytes] = None
    _sender_address: Optional[bytes] = None

    def __setattr__(self, name: str, value: Any) -> None:
        super().__setattr__(name, value)
        if name in self.SIGNATURE_FIELDS:
            self._sender_public_key = None
            self._sender_address = None

    @classmethod
    def build(cls, type_code: Union[int, bytes, str], payload: Any,
              nonce: int, fee_price: int, extra_data: Union[bytes, str] = b"",
              service_data: bytes = b"") -> "Transaction":
        """Build an unsigned transaction.

        ``payload`` may be a payload record, a mapping of payload fields, or
        encoded payload bytes. A str ``extra_data`` is stored as UTF-8 text,
        never hex decoded. Raises UnknownTypeError for an unregistered type
        and SchemaError/DecodeError for a payload that does not fit its
        schema.
        """
        record = build_payload(type_code, payload)
        if isinstance(extra_data, str):
            extra_data = extra_data.encode("utf-8")
        tx = cls({
            "nonce": nonce,
            "fee_price": fee_price,
            "type_code": record.TYPE,
            "payload": record.serialize(),
            "extra_data": extra_data,
            "service_data": service_data,
        })
        logger.debug("Built %s transaction with nonce %d",
                     type(record).__name__, nonce)
        return tx

    @classmethod
    def from_hex(cls, data: str) -> "Transaction":
        try:
            raw = bytes.fromhex(strip_prefix(data, (TX_PREFIX, "0x")))
        except ValueError as e:
            raise DecodeError("Transaction is not valid hex") from e
        return cls.deserialize(raw)

    def to_hex(self) -> str:
        return self.serialize().hex()

    def hash(self, include_signature: bool = True) -> bytes:
        """Keccak-256 of the RLP of all nine fields, or of the first six."""
        items = self.raw
        if not include_signature:
            items = items[:SIGNED_FIELD_COUNT]
        return keccak(rlp.encode(items))

    def signing_digest(self) -> bytes:
        return self.hash(include_signature=False)

    def full_digest(self) -> bytes:
        return self.hash(include_signature=True)

    def attach_signature(self, v: Union[int, bytes], r: Union[int, bytes],
                         s: Union[int, bytes]) -> "Transaction":
        """Set the signature fields. Not safe to call concurrently on one instance."""
        self.v = v
        self.r = r
        self.s = s
        return self

    def sign(self, private_key: Union[str, bytes]) -> "Transaction":
        return self.attach_signature(*sign_digest(self.signing_digest(), private_key))

    @property
    def is_signed(self) -> bool:
        return bool(self.r) and bool(self.s)

    def get_payload(self) -> Payload:
        """Decode the payload region with the schema selected by type_code."""
        return decode_payload(self.type_code, self.payload)

    def verify_signature(self) -> bool:
        """True if the signature is low-s and recovers a public key. Never raises."""
        try:
            self._recover()
        except SignatureError as e:
            logger.debug("Invalid signature: %s", e)
            return False
        return True

    def _recover(self) -> bytes:
        public_key = recover_public_key(self.signing_digest(), self.v, self.r, self.s)
        self._sender_public_key = public_key
        self._sender_address = None
        return public_key

    def sender_public_key(self) -> bytes:
        """64-byte public key of the signer. Raises SignatureError if invalid."""
        if self._sender_public_key is None:
            self._recover()
        return self._sender_public_key

    def sender_address(self) -> bytes:
        """20-byte address of the signer. Raises SignatureError if invalid."""
        if self._sender_address is None:
            self._sender_address = derive_address(self.sender_public_key())
        return self._sender_address

    @property
    def sender(self) -> str:
        return bytes_to_address(self.sender_address())

    def validate(self) -> ValidationResult:
        result = ValidationResult()
        if not self.verify_signature():
            result.errors.append(INVALID_SIGNATURE)
        try:
            self.get_payload()
        except UnknownTypeError:
            result.errors.append(UNKNOWN_TYPE)
        except DecodeError:
            result.errors.append(MALFORMED_PAYLOAD)
        return result
