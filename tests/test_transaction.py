"""Tests for the transaction envelope: digests, signing, verification."""

import logging

import pytest
import rlp
from eth_account import Account

from mintertx.constants import DEFAULT_V, SECP256K1_N, TxType
from mintertx.crypto import (
    derive_address,
    keccak,
    private_key_to_address,
    private_key_to_public_key,
)
from mintertx.exceptions import DecodeError, SchemaError, SignatureError, UnknownTypeError
from mintertx.helpers import bytes_to_address
from mintertx.payloads import CreateMultisigPayload, SendPayload
from mintertx.transaction import (
    INVALID_SIGNATURE,
    MALFORMED_PAYLOAD,
    UNKNOWN_TYPE,
    Transaction,
    ValidationResult,
)

from vectors import KNOWN_ADDRESS, KNOWN_PRIVATE_KEY, MULTISIG_ADDRESSES, MULTISIG_VECTOR


@pytest.fixture
def tx(send_data):
    return Transaction.build(TxType.SEND, send_data, nonce=1, fee_price=1,
                             extra_data=b"custom text")


@pytest.fixture
def signed_tx(tx, private_key):
    return tx.sign(private_key)


class TestBuild:
    def test_unsigned_defaults(self, tx):
        assert tx.v == DEFAULT_V
        assert tx.r == b""
        assert tx.s == b""
        assert not tx.is_signed

    def test_fields(self, tx, send_data):
        assert tx.nonce == b"\x01"
        assert tx.fee_price == b"\x01"
        assert tx.type_code == bytes([TxType.SEND])
        assert tx.payload == SendPayload(send_data).serialize()
        assert tx.extra_data == b"custom text"
        assert tx.service_data == b""

    def test_aliases(self, tx):
        assert tx.gas_price == tx.fee_price
        assert tx.data == tx.payload
        assert tx.memo == tx.extra_data

    def test_zero_nonce_is_empty(self, send_data):
        tx = Transaction.build(TxType.SEND, send_data, nonce=0, fee_price=0)
        assert tx.nonce == b""
        assert tx.fee_price == b""

    def test_from_payload_record(self):
        payload = CreateMultisigPayload({
            "addresses": MULTISIG_ADDRESSES, "weights": [1, 3, 5], "threshold": 7,
        })
        tx = Transaction.build(TxType.CREATE_MULTISIG, payload, nonce=5, fee_price=1)
        assert tx.payload == MULTISIG_VECTOR
        assert tx.get_payload() == payload

    def test_from_payload_bytes(self):
        tx = Transaction.build(TxType.CREATE_MULTISIG, MULTISIG_VECTOR, nonce=1, fee_price=1)
        assert tx.payload == MULTISIG_VECTOR

    def test_type_taken_from_name(self, send_data):
        tx = Transaction.build("send", send_data, nonce=1, fee_price=1)
        assert tx.int_value("type_code") == TxType.SEND

    def test_unknown_type(self, send_data):
        with pytest.raises(UnknownTypeError):
            Transaction.build(0x7F, send_data, nonce=1, fee_price=1)

    def test_payload_must_round_trip(self, send_data):
        raw = SendPayload(send_data).raw[:2]
        with pytest.raises(DecodeError):
            Transaction.build(TxType.SEND, rlp.encode(raw), nonce=1, fee_price=1)

    def test_invalid_payload_field(self):
        with pytest.raises(SchemaError):
            Transaction.build(TxType.SEND, {"coin": "MNT", "to": "Mx01", "value": 1},
                              nonce=1, fee_price=1)

    def test_nonce_too_large(self, send_data):
        with pytest.raises(SchemaError):
            Transaction.build(TxType.SEND, send_data, nonce=2 ** 256, fee_price=1)

    def test_text_memo_not_hex_decoded(self, send_data):
        for memo in ("0xdeadbeef is my ref", "0xab"):
            tx = Transaction.build(TxType.SEND, send_data, nonce=1, fee_price=1,
                                   extra_data=memo)
            assert tx.extra_data == memo.encode("utf-8")


class TestDigests:
    def test_signing_digest_covers_six_fields(self, tx):
        assert tx.signing_digest() == keccak(rlp.encode(tx.raw[:6]))
        assert tx.hash(False) == tx.signing_digest()

    def test_full_digest_covers_nine_fields(self, tx):
        assert tx.full_digest() == keccak(rlp.encode(tx.raw))
        assert tx.hash() == tx.full_digest()

    def test_signature_excluded_from_signing_digest(self, signed_tx):
        signing = signed_tx.signing_digest()
        full = signed_tx.full_digest()
        signed_tx.attach_signature(signed_tx.v, signed_tx.r, b"\x01")
        assert signed_tx.signing_digest() == signing
        assert signed_tx.full_digest() != full

    def test_each_signature_field_changes_full_digest(self, signed_tx):
        v, r, s = signed_tx.v, signed_tx.r, signed_tx.s
        full = signed_tx.full_digest()
        for changed in ((b"\x1b" if v == b"\x1c" else b"\x1c", r, s),
                        (v, b"\x01", s),
                        (v, r, b"\x01")):
            signed_tx.attach_signature(*changed)
            assert signed_tx.full_digest() != full
            signed_tx.attach_signature(v, r, s)
            assert signed_tx.full_digest() == full

    def test_placeholder_v_not_signed(self, tx):
        digest = tx.signing_digest()
        tx.attach_signature(0x1B, b"", b"")
        assert tx.signing_digest() == digest

    def test_content_changes_signing_digest(self, send_data):
        a = Transaction.build(TxType.SEND, send_data, nonce=1, fee_price=1)
        b = Transaction.build(TxType.SEND, send_data, nonce=2, fee_price=1)
        assert a.signing_digest() != b.signing_digest()


class TestSignVerify:
    def test_closure(self, signed_tx, private_key):
        assert signed_tx.is_signed
        assert signed_tx.verify_signature()
        assert signed_tx.sender_public_key() == private_key_to_public_key(private_key)
        assert signed_tx.sender_address() == derive_address(
            private_key_to_public_key(private_key))

    def test_sender_matches_eth_account(self, tx, account):
        tx.sign(account.key.hex())
        assert tx.sender.lower() == "mx" + account.address.lower()[2:]

    def test_known_key(self, tx):
        tx.sign(KNOWN_PRIVATE_KEY)
        assert tx.sender == KNOWN_ADDRESS

    def test_signature_shape(self, signed_tx):
        assert signed_tx.v in (b"\x1b", b"\x1c")
        assert 0 < len(signed_tx.r) <= 32
        assert 0 < len(signed_tx.s) <= 32
        assert signed_tx.r[:1] != b"\x00"
        assert signed_tx.s[:1] != b"\x00"

    def test_deterministic_signature(self, send_data, private_key):
        a = Transaction.build(TxType.SEND, send_data, nonce=3, fee_price=1).sign(private_key)
        b = Transaction.build(TxType.SEND, send_data, nonce=3, fee_price=1).sign(private_key)
        assert a.serialize() == b.serialize()

    def test_unsigned_fails(self, tx):
        assert not tx.verify_signature()
        with pytest.raises(SignatureError):
            tx.sender_address()

    def test_high_s_fails(self, signed_tx):
        s = signed_tx.int_value("s")
        v = signed_tx.int_value("v")
        signed_tx.attach_signature(55 - v, signed_tx.r, SECP256K1_N - s)
        assert not signed_tx.verify_signature()
        with pytest.raises(SignatureError):
            signed_tx.sender_address()

    def test_garbage_signature_fails(self, tx):
        tx.attach_signature(27, b"\xff" * 32, b"\x01")
        assert not tx.verify_signature()

    def test_tampered_content_changes_sender(self, signed_tx, private_key):
        tampered = Transaction.deserialize(signed_tx.serialize())
        raw = tampered.raw
        raw[0] = b"\x09"
        tampered = Transaction(raw)
        if tampered.verify_signature():
            assert tampered.sender_address() != private_key_to_address(private_key)

    def test_resign_resets_sender_cache(self, signed_tx):
        first = signed_tx.sender_address()
        other = Account.create()
        signed_tx.sign(bytes(other.key))
        assert signed_tx.sender_address() != first
        assert signed_tx.sender_address() == private_key_to_address(bytes(other.key))

    def test_direct_assignment_resets_sender_cache(self, signed_tx, private_key):
        assert signed_tx.sender_address() == private_key_to_address(private_key)
        other_key = bytes(Account.create().key)
        other = Transaction.deserialize(signed_tx.serialize()).sign(other_key)
        signed_tx.v = other.v
        signed_tx.r = other.r
        signed_tx.s = other.s
        assert signed_tx.sender_address() == private_key_to_address(other_key)
        assert signed_tx.sender_public_key() == private_key_to_public_key(other_key)

    def test_cached_address_follows_recovered_key(self, signed_tx):
        first = signed_tx.sender_address()
        signed_tx.s = b"\x01"
        assert signed_tx.verify_signature()
        assert signed_tx.sender_address() == derive_address(signed_tx.sender_public_key())
        assert signed_tx.sender_address() != first

    def test_rejections_not_logged_as_warnings(self, tx, caplog):
        with caplog.at_level(logging.WARNING, logger="mintertx"):
            assert not tx.verify_signature()
            tx.validate()
        assert caplog.records == []

    def test_non_signature_fields_read_only(self, signed_tx):
        with pytest.raises(AttributeError):
            signed_tx.nonce = 2


class TestSerialization:
    def test_round_trip(self, signed_tx, private_key):
        decoded = Transaction.deserialize(signed_tx.serialize())
        assert decoded == signed_tx
        assert decoded.verify_signature()
        assert decoded.sender_address() == private_key_to_address(private_key)

    def test_hex_round_trip(self, signed_tx):
        hex_tx = signed_tx.to_hex()
        assert Transaction.from_hex(hex_tx) == signed_tx
        assert Transaction.from_hex("0x" + hex_tx) == signed_tx
        assert Transaction.from_hex("Mt" + hex_tx) == signed_tx
        assert Transaction.from_hex("0X" + hex_tx) == signed_tx
        assert Transaction.from_hex("mt" + hex_tx) == signed_tx

    def test_invalid_hex(self):
        with pytest.raises(DecodeError, match="hex"):
            Transaction.from_hex("zz")

    def test_nine_fields(self, signed_tx):
        assert len(rlp.decode(signed_tx.serialize())) == 9

    def test_unsigned_round_trip(self, tx):
        decoded = Transaction.deserialize(tx.serialize())
        assert decoded.v == DEFAULT_V
        assert decoded.r == b""

    def test_non_canonical_signature_rejected(self, signed_tx):
        raw = signed_tx.raw
        raw[7] = b"\x00" + raw[7]
        with pytest.raises(DecodeError) as exc:
            Transaction.deserialize(rlp.encode(raw))
        assert exc.value.field == "r"

    def test_padded_v_rejected(self, signed_tx):
        for padded in (b"\x00" + signed_tx.v, b"\x00\x00" + signed_tx.v):
            raw = signed_tx.raw
            raw[6] = padded
            with pytest.raises(DecodeError) as exc:
                Transaction.deserialize(rlp.encode(raw))
            assert exc.value.field == "v"

    def test_empty_v_fails_verification(self, signed_tx):
        raw = signed_tx.raw
        raw[6] = b""
        decoded = Transaction.deserialize(rlp.encode(raw))
        assert not decoded.verify_signature()
        assert decoded.validate().errors == [INVALID_SIGNATURE]

    def test_raw_recovery_id_fails_verification(self, signed_tx):
        # recovery ids 0 and 1 in canonical form
        for v in (b"", b"\x01"):
            raw = signed_tx.raw
            raw[6] = v
            decoded = Transaction.deserialize(rlp.encode(raw))
            assert not decoded.verify_signature()

    def test_one_encoding_per_signature(self, signed_tx):
        v = signed_tx.v
        accepted = set()
        for candidate in (v, b"\x00" + v, b"\x00\x00" + v, b"\x01", b""):
            raw = signed_tx.raw
            raw[6] = candidate
            try:
                decoded = Transaction.deserialize(rlp.encode(raw))
            except DecodeError:
                continue
            if decoded.verify_signature():
                accepted.add(decoded.full_digest())
        assert accepted == {signed_tx.full_digest()}

    def test_wide_v_rejected_on_assignment(self, signed_tx):
        with pytest.raises(SchemaError):
            signed_tx.attach_signature(b"\x01\x1c", signed_tx.r, signed_tx.s)

    def test_get_payload(self, signed_tx, send_data):
        decoded = Transaction.deserialize(signed_tx.serialize())
        assert decoded.get_payload() == SendPayload(send_data)


class TestValidate:
    def test_valid(self, signed_tx):
        result = signed_tx.validate()
        assert result.ok
        assert bool(result)
        assert str(result) == ""

    def test_invalid_signature(self, tx):
        result = tx.validate()
        assert result.errors == [INVALID_SIGNATURE]
        assert str(result) == "invalid-signature"

    def test_unknown_type(self, private_key):
        tx = Transaction({"nonce": 1, "type_code": 0x7F, "payload": b"\xc0"})
        tx.sign(private_key)
        assert tx.validate().errors == [UNKNOWN_TYPE]

    def test_malformed_payload(self):
        tx = Transaction({"nonce": 1, "type_code": TxType.SEND, "payload": b"\xc1\x01"})
        assert tx.validate().errors == [INVALID_SIGNATURE, MALFORMED_PAYLOAD]

    def test_result_defaults(self):
        assert ValidationResult().ok
