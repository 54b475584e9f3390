import pytest

from pubdex.addresses import (
    AddressMapping,
    create_p2sh_p2wpkh,
    get_address_mapping_from_pubkey,
    get_pub_key,
    outpoint_bytes,
    p2pkh_address,
    try_peek_pubkey,
)
from pubdex.crypto import G, encode_point, hash160
from pubdex.errors import BlockchainError

PK = encode_point(G, True)
PK_FULL = encode_point(G, False)
H = hash160(PK)


def test_mapping_compressed():
    mapping = get_address_mapping_from_pubkey(PK)
    assert mapping.p2wpkh == "bc1qw508d6qejxtdg4y5r3zarvary0c5xw7kv8f3t4"
    assert mapping.p2pkh == "1BgGZ9tcN4rm9KBzDn7KprQz87SZ26SAMH"
    assert mapping.p2shp2wpkh == create_p2sh_p2wpkh(PK)
    assert mapping.p2shp2wpkh.startswith("3")
    assert mapping.p2tr.startswith("bc1p")
    assert mapping.addresses() == [
        mapping.p2tr,
        mapping.p2pkh,
        mapping.p2shp2wpkh,
        mapping.p2wpkh,
    ]


def test_mapping_uncompressed_only_p2pkh():
    mapping = get_address_mapping_from_pubkey(PK_FULL)
    assert mapping == AddressMapping(p2pkh=p2pkh_address(PK_FULL))
    assert mapping.to_json()["p2tr"] is None


@pytest.mark.parametrize("data", [b"\x02" * 10, b"\x02" + b"\xff" * 32])
def test_mapping_invalid(data):
    with pytest.raises(BlockchainError):
        get_address_mapping_from_pubkey(data)


def test_outpoint_bytes():
    out = outpoint_bytes(bytes(range(32)), 1)
    assert out[:32] == bytes(range(32))
    assert out[32:] == b"\x01\x00\x00\x00"
    with pytest.raises(BlockchainError):
        outpoint_bytes(b"short", 0)


def test_p2wpkh_pubkey():
    fund = b"\x00\x14" + H
    assert get_pub_key(fund, b"", [b"sig", PK]) == PK
    assert try_peek_pubkey(fund, b"", [b"sig", PK]) == PK


def test_p2wpkh_hash_mismatch():
    fund = b"\x00\x14" + bytes(20)
    with pytest.raises(BlockchainError):
        get_pub_key(fund, b"", [b"sig", PK])


def test_p2pkh_pubkey():
    fund = b"\x76\xa9\x14" + H + b"\x88\xac"
    spend = b"\x03sig" + bytes([33]) + PK
    assert get_pub_key(fund, spend, []) == PK
    assert try_peek_pubkey(fund, spend, []) == PK


def test_p2sh_p2wpkh_pubkey():
    redeem = b"\x00\x14" + H
    fund = b"\xa9\x14" + hash160(redeem) + b"\x87"
    spend = bytes([len(redeem)]) + redeem
    assert get_pub_key(fund, spend, [b"sig", PK]) == PK


def test_p2pk_pubkey():
    fund = b"\x21" + PK + b"\xac"
    assert get_pub_key(fund, b"", []) == PK
    assert try_peek_pubkey(fund, b"", []) == PK


def test_p2tr_pubkey():
    fund = b"\x51\x20" + PK[1:]
    assert get_pub_key(fund, b"", []) == b"\x02" + PK[1:]
    assert try_peek_pubkey(fund, b"", []) == PK[1:]


def test_unknown_script():
    assert try_peek_pubkey(b"\x6a", b"", []) is None
    with pytest.raises(BlockchainError):
        get_pub_key(b"\x6a", b"", [])