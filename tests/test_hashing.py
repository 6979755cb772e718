import pytest

from basebuster.hashing import address_to_word, keccak256, mapping_slot, word_to_address

WETH = "0x4200000000000000000000000000000000000006"
USDC = "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913"


def test_keccak_of_empty_input():
    assert keccak256(b"").hex() == (
        "c5d2460186f7233c927e7db2dcc703c0e500b653ca82273b7bfad8045d85a470"
    )


def test_keccak_digest_length_and_determinism():
    digest = keccak256(b"basebuster")
    assert len(digest) == 32
    assert digest == keccak256(bytearray(b"basebuster"))
    assert digest != keccak256(b"basebuster!")


def test_address_word_round_trip_lowercases():
    assert word_to_address(address_to_word(USDC)) == USDC.lower()
    assert word_to_address(address_to_word(WETH)) == WETH


def test_word_to_address_drops_high_bits():
    word = (1 << 200) | address_to_word(USDC)
    assert word_to_address(word) == USDC.lower()


def test_word_to_address_from_bytes():
    raw = bytes(12) + bytes.fromhex(WETH[2:])
    assert word_to_address(raw) == WETH


def test_address_from_raw_bytes():
    raw = bytes.fromhex(USDC[2:])
    assert address_to_word(raw) == address_to_word(USDC)


@pytest.mark.parametrize("bad", ["0x1234", "0xzz" + "00" * 19, b"\x00" * 19])
def test_bad_address_rejected(bad):
    with pytest.raises(ValueError):
        address_to_word(bad)


def test_word_out_of_range_rejected():
    with pytest.raises(ValueError):
        word_to_address(1 << 256)
    with pytest.raises(ValueError):
        word_to_address(b"\x00" * 31)


def test_mapping_slot_negative_key_is_twos_complement():
    assert mapping_slot(-58, 6) == mapping_slot((1 << 256) - 58, 6)


def test_mapping_slot_depends_on_key_and_offset():
    slots = {mapping_slot(-887220, 5), mapping_slot(-887220, 6), mapping_slot(887220, 5)}
    assert len(slots) == 3
    assert all(0 <= s < (1 << 256) for s in slots)


def test_mapping_slot_rejects_oversized_key():
    with pytest.raises(ValueError):
        mapping_slot(1 << 256, 3)