"""Derivation of addresses from public keys and public keys from scripts."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import asdict, dataclass

from .chain import BECH32_HRP, P2PKH_VERSION, P2SH_VERSION
from .crypto import (
    base58check_encode,
    decode_pubkey,
    encode_point,
    hash160,
    lift_x,
    segwit_address,
    taproot_tweak,
)
from .errors import BlockchainError
from .script import Script


@dataclass
class AddressMapping:
    """All addresses controlled by one public key."""

    p2tr: str | None = None
    p2wpkh: str | None = None
    p2shp2wpkh: str | None = None
    p2pkh: str | None = None

    def addresses(self) -> list[str]:
        """Present addresses in storage order: p2tr, p2pkh, p2shp2wpkh, p2wpkh."""
        candidates = (self.p2tr, self.p2pkh, self.p2shp2wpkh, self.p2wpkh)
        return [a for a in candidates if a is not None]

    def to_json(self) -> dict:
        return asdict(self)


def outpoint_bytes(txid: bytes, vout: int) -> bytes:
    """36-byte outpoint: txid bytes followed by little-endian vout."""
    txid = bytes(txid)
    if len(txid) != 32:
        raise BlockchainError("txid must be 32 bytes")
    return txid + vout.to_bytes(4, "little")


def p2pkh_address(pubkey: bytes) -> str:
    return base58check_encode(bytes([P2PKH_VERSION]) + hash160(pubkey))


def create_p2sh_p2wpkh(pubkey: bytes) -> str:
    """P2SH address wrapping the P2WPKH script of a compressed key."""
    redeem_script = b"\x00\x14" + hash160(pubkey)
    return base58check_encode(bytes([P2SH_VERSION]) + hash160(redeem_script))


def get_address_mapping_from_pubkey(pubkey: bytes) -> AddressMapping:
    """Derive every address of a 33- or 65-byte public key."""
    pubkey = bytes(pubkey)
    if len(pubkey) not in (33, 65):
        raise BlockchainError("Invalid pubkey passed (must be of length 33 to 65")
    compressed = len(pubkey) == 33
    serialized = encode_point(decode_pubkey(pubkey), compressed)
    p2pkh = p2pkh_address(serialized)
    if not compressed:
        return AddressMapping(p2pkh=p2pkh)
    xonly = pubkey[1:]
    return AddressMapping(
        p2pkh=p2pkh,
        p2wpkh=segwit_address(BECH32_HRP, 0, hash160(serialized)),
        p2shp2wpkh=create_p2sh_p2wpkh(serialized),
        p2tr=segwit_address(BECH32_HRP, 1, taproot_tweak(xonly)),
    )


def _second_push(script: Script) -> bytes | None:
    pushes = script.pushes()
    next(pushes, None)
    return next(pushes, None)


def try_peek_pubkey(
    fund_script: bytes | Script, spend_script: bytes | Script, witness: Sequence[bytes]
) -> bytes | None:
    """Cheaply pick out the bytes that identify a spender's key, if any."""
    fund = Script(fund_script)
    if fund.is_p2tr():
        return fund.data[2:34]
    if (fund.is_p2wpkh() or fund.is_p2sh()) and len(witness) >= 2:
        return bytes(witness[1])
    if fund.is_p2pkh():
        return _second_push(Script(spend_script))
    if fund.is_p2pk():
        return next(fund.pushes(), None)
    return None


def get_pub_key(
    fund_script: bytes | Script, spend_script: bytes | Script, witness: Sequence[bytes]
) -> bytes:
    """Recover the public key that spends ``fund_script``."""
    fund = Script(fund_script)
    spend = Script(spend_script)

    if fund.is_p2tr():
        xonly = fund.data[2:34]
        try:
            lift_x(int.from_bytes(xonly, "big"))
        except BlockchainError:
            pass
        else:
            return b"\x02" + xonly

    if fund.is_p2wpkh() and len(witness) >= 2:
        pk = bytes(witness[1])
        if fund.data[2:22] == hash160(pk):
            return pk

    if fund.is_p2pkh():
        pk = _second_push(spend)
        if pk is not None and (
            (len(pk) == 33 and pk[0] in (0x02, 0x03)) or (len(pk) == 65 and pk[0] == 0x04)
        ):
            return pk

    if fund.is_p2sh():
        pushes = list(spend.pushes())
        if pushes:
            redeem = Script(pushes[-1])
            if redeem.is_p2wpkh() and len(witness) >= 2:
                pk = bytes(witness[1])
                if redeem.data[2:22] == hash160(pk):
                    return pk

    if fund.is_p2pk():
        first = next(fund.instructions(), None)
        if first is not None and first.data is not None:
            return first.data

    raise BlockchainError("(pubkey) failed to get pubkey from scripts")