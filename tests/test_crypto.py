import pytest

from pubdex.crypto import (
    G,
    N,
    P,
    base58check_encode,
    decode_pubkey,
    encode_point,
    hash160,
    lift_x,
    segwit_address,
    sha256d,
    tagged_hash,
    taproot_tweak,
)
from pubdex.errors import BlockchainError

G_COMPRESSED = bytes.fromhex(
    "0279be667ef9dcbbac55a06295ce870b07029bfcdb2dce28d959f2815b16f81798"
)


def test_hash160_of_generator():
    assert hash160(G_COMPRESSED).hex() == "751e76e8199196d454941c45d1b3a323f1433bd6"


def test_base58check_p2pkh():
    assert base58check_encode(b"\x00" + hash160(G_COMPRESSED)) == (
        "1BgGZ9tcN4rm9KBzDn7KprQz87SZ26SAMH"
    )


def test_base58check_leading_zeros_become_ones():
    assert base58check_encode(b"\x00\x00\x01").startswith("11")


def test_segwit_v0():
    assert segwit_address("bc", 0, hash160(G_COMPRESSED)) == (
        "bc1qw508d6qejxtdg4y5r3zarvary0c5xw7kv8f3t4"
    )


def test_segwit_v1_prefix_and_length():
    address = segwit_address("bc", 1, bytes(32))
    assert address.startswith("bc1p")
    assert len(address) == 62


def test_segwit_bad_program():
    with pytest.raises(BlockchainError):
        segwit_address("bc", 0, b"\x01")


def test_sha256d_and_tagged_hash_sizes():
    assert len(sha256d(b"")) == 32
    assert len(tagged_hash("TapTweak", b"")) == 32
    assert tagged_hash("A", b"x") != tagged_hash("B", b"x")
    assert tagged_hash("A", b"x") == tagged_hash("A", b"x")


def test_encode_decode_round_trip():
    assert encode_point(G, True) == G_COMPRESSED
    assert decode_pubkey(encode_point(G, True)) == G
    assert decode_pubkey(encode_point(G, False)) == G


def test_lift_x_even():
    point = lift_x(G[0])
    assert point == G
    assert point[1] % 2 == 0


def test_decode_odd_prefix_gives_odd_y():
    odd = b"\x03" + G_COMPRESSED[1:]
    x, y = decode_pubkey(odd)
    assert x == G[0]
    assert y == P - G[1]


@pytest.mark.parametrize(
    "data",
    [b"", b"\x02" + b"\xff" * 32, b"\x05" + bytes(32), b"\x04" + bytes(64)],
)
def test_decode_invalid(data):
    with pytest.raises(BlockchainError):
        decode_pubkey(data)


def test_taproot_tweak_is_valid_x():
    tweaked = taproot_tweak(G_COMPRESSED[1:])
    assert len(tweaked) == 32
    assert lift_x(int.from_bytes(tweaked, "big"))[0] == int.from_bytes(tweaked, "big")
    assert N < P