"""Hashing, secp256k1 point arithmetic and address encodings."""

from __future__ import annotations

import hashlib

from Crypto.Hash import RIPEMD160

from .errors import BlockchainError

Point = tuple[int, int]

P = 2**256 - 2**32 - 977
N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141
G: Point = (
    0x79BE667EF9DCBBAC55A06295CE870B07029BFCDB2DCE28D959F2815B16F81798,
    0x483ADA7726A3C4655DA4FBFC0E1108A8FD17B448A68554199C47D08FFB10D4B8,
)

_BECH32_CHARSET = "qpzry9x8gf2tvdw0s3jn54khce6mua7l"
_BECH32_CONST = 1
_BECH32M_CONST = 0x2BC830A3
_BASE58_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"


def hash160(data: bytes) -> bytes:
    """RIPEMD160 of SHA256."""
    return RIPEMD160.new(hashlib.sha256(data).digest()).digest()


def sha256d(data: bytes) -> bytes:
    """Double SHA256."""
    return hashlib.sha256(hashlib.sha256(data).digest()).digest()


def tagged_hash(tag: str, data: bytes) -> bytes:
    """BIP340 tagged hash."""
    tag_digest = hashlib.sha256(tag.encode()).digest()
    return hashlib.sha256(tag_digest + tag_digest + data).digest()


def _on_curve(point: Point) -> bool:
    x, y = point
    return (y * y - x * x * x - 7) % P == 0


def _add(a: Point | None, b: Point | None) -> Point | None:
    if a is None:
        return b
    if b is None:
        return a
    if a[0] == b[0] and (a[1] + b[1]) % P == 0:
        return None
    if a == b:
        slope = 3 * a[0] * a[0] * pow(2 * a[1], -1, P) % P
    else:
        slope = (b[1] - a[1]) * pow(b[0] - a[0], -1, P) % P
    x = (slope * slope - a[0] - b[0]) % P
    y = (slope * (a[0] - x) - a[1]) % P
    return (x, y)


def _mul(k: int, point: Point | None) -> Point | None:
    result = None
    addend = point
    while k:
        if k & 1:
            result = _add(result, addend)
        addend = _add(addend, addend)
        k >>= 1
    return result


def lift_x(x: int) -> Point:
    """Return the curve point with the given x coordinate and even y."""
    if not 0 <= x < P:
        raise BlockchainError("x coordinate out of range")
    c = (pow(x, 3, P) + 7) % P
    y = pow(c, (P + 1) // 4, P)
    if y * y % P != c:
        raise BlockchainError("x coordinate is not on the curve")
    return (x, y if y % 2 == 0 else P - y)


def decode_pubkey(data: bytes) -> Point:
    """Parse a compressed, uncompressed or hybrid SEC public key."""
    data = bytes(data)
    if len(data) == 33 and data[0] in (0x02, 0x03):
        x, y = lift_x(int.from_bytes(data[1:], "big"))
        if (y & 1) != (data[0] & 1):
            y = P - y
        return (x, y)
    if len(data) == 65 and data[0] in (0x04, 0x06, 0x07):
        x = int.from_bytes(data[1:33], "big")
        y = int.from_bytes(data[33:], "big")
        if x >= P or y >= P or not _on_curve((x, y)):
            raise BlockchainError("public key is not on the curve")
        if data[0] != 0x04 and (y & 1) != (data[0] & 1):
            raise BlockchainError("hybrid public key parity mismatch")
        return (x, y)
    raise BlockchainError("malformed public key")


def encode_point(point: Point, compressed: bool) -> bytes:
    """Serialize a point in SEC format."""
    x, y = point
    if compressed:
        return bytes([0x02 | (y & 1)]) + x.to_bytes(32, "big")
    return b"\x04" + x.to_bytes(32, "big") + y.to_bytes(32, "big")


def taproot_tweak(xonly: bytes) -> bytes:
    """Tweak an x-only internal key with an empty script tree (BIP341)."""
    internal = lift_x(int.from_bytes(xonly, "big"))
    tweak = int.from_bytes(tagged_hash("TapTweak", bytes(xonly)), "big")
    if tweak >= N:
        raise BlockchainError("taproot tweak out of range")
    output = _add(internal, _mul(tweak, G))
    if output is None:
        raise BlockchainError("taproot output key is infinity")
    return output[0].to_bytes(32, "big")


def base58check_encode(payload: bytes) -> str:
    """Base58 encode a payload with its 4-byte checksum."""
    data = bytes(payload) + sha256d(payload)[:4]
    number = int.from_bytes(data, "big")
    encoded = []
    while number:
        number, rem = divmod(number, 58)
        encoded.append(_BASE58_ALPHABET[rem])
    leading = len(data) - len(data.lstrip(b"\x00"))
    return "1" * leading + "".join(reversed(encoded))


def _polymod(values: list[int]) -> int:
    generators = (0x3B6A57B2, 0x26508E6D, 0x1EA119FA, 0x3D4233DD, 0x2A1462B3)
    chk = 1
    for value in values:
        top = chk >> 25
        chk = (chk & 0x1FFFFFF) << 5 ^ value
        for bit, gen in enumerate(generators):
            if (top >> bit) & 1:
                chk ^= gen
    return chk


def _hrp_expand(hrp: str) -> list[int]:
    return [ord(c) >> 5 for c in hrp] + [0] + [ord(c) & 31 for c in hrp]


def _convert_bits(data: bytes, from_bits: int, to_bits: int) -> list[int]:
    acc = 0
    bits = 0
    out = []
    maxv = (1 << to_bits) - 1
    for value in data:
        acc = (acc << from_bits) | value
        bits += from_bits
        while bits >= to_bits:
            bits -= to_bits
            out.append((acc >> bits) & maxv)
    if bits:
        out.append((acc << (to_bits - bits)) & maxv)
    return out


def segwit_address(hrp: str, version: int, program: bytes) -> str:
    """Encode a witness program as bech32 (v0) or bech32m (v1+)."""
    if not 0 <= version <= 16:
        raise BlockchainError("invalid witness version")
    if not 2 <= len(program) <= 40:
        raise BlockchainError("invalid witness program length")
    data = [version] + _convert_bits(bytes(program), 8, 5)
    const = _BECH32_CONST if version == 0 else _BECH32M_CONST
    poly = _polymod(_hrp_expand(hrp) + data + [0] * 6) ^ const
    checksum = [(poly >> 5 * (5 - i)) & 31 for i in range(6)]
    return hrp + "1" + "".join(_BECH32_CHARSET[d] for d in data + checksum)