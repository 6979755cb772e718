"""Keccak hashing and 32-byte storage word helpers."""

from __future__ import annotations

from Crypto.Hash import keccak

_WORD_BITS = 256
_WORD_MOD = 1 << _WORD_BITS
_ADDRESS_MASK = (1 << 160) - 1


def keccak256(data: bytes) -> bytes:
    """Return the 32-byte Keccak-256 digest of ``data``."""
    return keccak.new(digest_bits=256, data=bytes(data)).digest()


def address_to_word(address: str | bytes) -> int:
    """Return a 20-byte address as an unsigned integer word."""
    if isinstance(address, (bytes, bytearray)):
        raw = bytes(address)
    else:
        text = address[2:] if address[:2].lower() == "0x" else address
        try:
            raw = bytes.fromhex(text)
        except ValueError as exc:
            raise ValueError(f"invalid address {address!r}") from exc
    if len(raw) != 20:
        raise ValueError(f"address must be 20 bytes, got {len(raw)}")
    return int.from_bytes(raw, "big")


def word_to_address(word: int | bytes) -> str:
    """Return the address held in the low 20 bytes of a 32-byte word."""
    if isinstance(word, (bytes, bytearray)):
        if len(word) != 32:
            raise ValueError(f"word must be 32 bytes, got {len(word)}")
        word = int.from_bytes(word, "big")
    if not 0 <= word < _WORD_MOD:
        raise ValueError("word out of 256-bit range")
    return "0x" + format(word & _ADDRESS_MASK, "040x")


def _encode_word(value: int) -> bytes:
    if not -(1 << (_WORD_BITS - 1)) <= value < _WORD_MOD:
        raise ValueError(f"value {value} does not fit in 256 bits")
    return (value % _WORD_MOD).to_bytes(32, "big")


def mapping_slot(key: int, offset: int) -> int:
    """Return the storage slot of ``key`` in a mapping stored at ``offset``.

    Negative keys are encoded as 256-bit two's complement, as signed
    mapping keys are laid out on chain.
    """
    return int.from_bytes(keccak256(_encode_word(key) + _encode_word(offset)), "big")