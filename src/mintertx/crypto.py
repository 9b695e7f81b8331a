"""secp256k1 signing, public key recovery and address derivation.

Signatures are produced over a 32-byte keccak-256 digest with eth-account
(deterministic RFC 6979 nonces, low-s normalized) and recovered with
eth-keys, the key backend eth-account is built on. ``v`` is the recovery
id plus 27.
"""

from __future__ import annotations
import logging
from typing import Union

from eth_account import Account
from eth_keys import keys
from eth_keys.exceptions import BadSignature, ValidationError
from web3 import Web3

from mintertx.constants import (
    ADDRESS_SIZE,
    PUBLIC_KEY_SIZE,
    SECP256K1_N_DIV_2,
    SIGNATURE_PART_SIZE,
    V_OFFSET,
)
from mintertx.exceptions import SignatureError

logger = logging.getLogger(__name__)

IntOrBytes = Union[int, bytes]


def keccak(data: bytes) -> bytes:
    """Keccak-256 digest."""
    return bytes(Web3.keccak(data))


def _as_int(value: IntOrBytes) -> int:
    if isinstance(value, int):
        return value
    return int.from_bytes(value, "big")


def private_key_to_bytes(private_key: Union[str, bytes]) -> bytes:
    """Normalize a hex (optionally 0x-prefixed) or raw private key to 32 bytes."""
    if isinstance(private_key, str):
        hex_key = private_key[2:] if private_key[:2].lower() == "0x" else private_key
        try:
            private_key = bytes.fromhex(hex_key)
        except ValueError as e:
            raise SignatureError("Private key is not valid hex") from e
    if len(private_key) != 32:
        raise SignatureError(f"Private key must be 32 bytes, got {len(private_key)}")
    return bytes(private_key)


def private_key_to_public_key(private_key: Union[str, bytes]) -> bytes:
    """Return the 64-byte uncompressed public key for a private key."""
    try:
        key = keys.PrivateKey(private_key_to_bytes(private_key))
    except ValidationError as e:
        raise SignatureError(f"Invalid private key: {e}") from e
    return key.public_key.to_bytes()


def sign_digest(digest: bytes, private_key: Union[str, bytes]) -> tuple[int, int, int]:
    """Sign a 32-byte digest. Returns (v, r, s) with v in {27, 28}."""
    key = private_key_to_bytes(private_key)
    try:
        signed = Account.unsafe_sign_hash(digest, key)
    except (ValidationError, ValueError) as e:
        raise SignatureError(f"Cannot sign: {e}") from e
    logger.debug("Signed digest %s", digest.hex())
    return signed.v, signed.r, signed.s


def verify_bound(s: IntOrBytes) -> bool:
    """Low-s rule: only s <= N/2 is canonical."""
    return _as_int(s) <= SECP256K1_N_DIV_2


def recover_public_key(digest: bytes, v: IntOrBytes, r: IntOrBytes,
                       s: IntOrBytes) -> bytes:
    """Recover the 64-byte public key that produced a signature.

    ``v`` must be 27 or 28. Raises SignatureError for a high s, empty or
    zero r/s, any other v, or a signature that does not recover to a point.
    """
    for name, part in (("r", r), ("s", s)):
        if isinstance(part, bytes) and len(part) > SIGNATURE_PART_SIZE:
            raise SignatureError(f"Signature {name} longer than {SIGNATURE_PART_SIZE} bytes")
    r_int, s_int = _as_int(r), _as_int(s)
    if r_int == 0 or s_int == 0:
        raise SignatureError("Signature r and s must be non-zero")
    if not verify_bound(s_int):
        raise SignatureError("Signature s value exceeds secp256k1n/2")

    if isinstance(v, bytes) and len(v) != 1:
        raise SignatureError(f"Signature v must be 1 byte, got {len(v)}")
    v_int = _as_int(v) - V_OFFSET
    if v_int not in (0, 1):
        raise SignatureError(f"Invalid recovery id: {_as_int(v)}")

    try:
        signature = keys.Signature(vrs=(v_int, r_int, s_int))
        public_key = signature.recover_public_key_from_msg_hash(digest)
    except (BadSignature, ValidationError) as e:
        raise SignatureError(f"Public key recovery failed: {e}") from e
    return public_key.to_bytes()


def verify(digest: bytes, v: IntOrBytes, r: IntOrBytes, s: IntOrBytes) -> bool:
    """True if a public key can be recovered from a low-s signature."""
    try:
        recover_public_key(digest, v, r, s)
    except SignatureError as e:
        logger.debug("Signature rejected: %s", e)
        return False
    return True


def derive_address(public_key: bytes) -> bytes:
    """Last 20 bytes of the keccak-256 hash of the 64-byte public key."""
    if len(public_key) != PUBLIC_KEY_SIZE:
        raise SignatureError(
            f"Public key must be {PUBLIC_KEY_SIZE} bytes, got {len(public_key)}"
        )
    return keccak(public_key)[-ADDRESS_SIZE:]


def private_key_to_address(private_key: Union[str, bytes]) -> bytes:
    return derive_address(private_key_to_public_key(private_key))
