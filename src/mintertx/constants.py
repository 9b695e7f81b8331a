"""Shared constants for Minter transaction encoding and signing."""

# Field widths (bytes)
ADDRESS_SIZE = 20
COIN_SYMBOL_SIZE = 10
PUBKEY_SIZE = 32
INT_FIELD_SIZE = 32  # big-endian integers, minimized on encode
SIGNATURE_PART_SIZE = 32  # r and s
CHECK_PROOF_SIZE = 65
PUBLIC_KEY_SIZE = 64  # uncompressed secp256k1 key without the 0x04 prefix

# Text prefixes
ADDRESS_PREFIX = "Mx"
PUBKEY_PREFIX = "Mp"
TX_PREFIX = "Mt"
CHECK_PREFIX = "Mc"

# secp256k1 group order and the low-s bound
SECP256K1_N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141
SECP256K1_N_DIV_2 = 0x7FFFFFFFFFFFFFFFFFFFFFFFFFFFFFFF5D576E7357A4501DDFE92F46681B20A0

# Recovery id offset (v = recovery_id + 27)
V_OFFSET = 27
# Placeholder v of an unsigned transaction; excluded from the signing digest
DEFAULT_V = b"\x1c"

# Number of leading envelope fields covered by the signing digest
SIGNED_FIELD_COUNT = 6

# Amounts
PIP_PER_COIN = 1_000_000_000_000_000_000  # 10^18
DEFAULT_FEE_PRICE = 1
DEFAULT_COIN = "MNT"


class TxType:
    """Minter transaction types (1 byte)."""

    SEND = 0x01
    SELL_COIN = 0x02
    SELL_ALL_COIN = 0x03
    BUY_COIN = 0x04
    CREATE_COIN = 0x05
    DECLARE_CANDIDACY = 0x06
    DELEGATE = 0x07
    UNBOND = 0x08
    REDEEM_CHECK = 0x09
    SET_CANDIDATE_ON = 0x0A
    SET_CANDIDATE_OFF = 0x0B
    CREATE_MULTISIG = 0x0C
    MULTISEND = 0x0D
    EDIT_CANDIDATE = 0x0E

    @classmethod
    def names(cls) -> dict[int, str]:
        return {
            value: name for name, value in vars(cls).items()
            if name.isupper() and isinstance(value, int)
        }
