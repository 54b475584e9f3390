"""Parsing of serialized blocks and transactions."""

from __future__ import annotations

import io
from dataclasses import dataclass, field
from typing import BinaryIO

from .crypto import sha256d
from .errors import BlockchainError

HEADER_SIZE = 80

_VARINT_WIDTHS = {0xFD: (2, 0xFD), 0xFE: (4, 0x10000), 0xFF: (8, 0x100000000)}


def _read(stream: BinaryIO, size: int) -> bytes:
    data = stream.read(size)
    if len(data) != size:
        raise BlockchainError("unexpected end of data")
    return data


def _read_int(stream: BinaryIO, size: int, signed: bool = False) -> int:
    return int.from_bytes(_read(stream, size), "little", signed=signed)


def _read_varint(stream: BinaryIO) -> int:
    first = _read(stream, 1)[0]
    if first < 0xFD:
        return first
    width, minimum = _VARINT_WIDTHS[first]
    value = _read_int(stream, width)
    if value < minimum:
        raise BlockchainError("non-minimal varint")
    return value


def _read_var_bytes(stream: BinaryIO) -> bytes:
    return _read(stream, _read_varint(stream))


def _varint(value: int) -> bytes:
    if value < 0xFD:
        return bytes([value])
    if value <= 0xFFFF:
        return b"\xfd" + value.to_bytes(2, "little")
    if value <= 0xFFFFFFFF:
        return b"\xfe" + value.to_bytes(4, "little")
    return b"\xff" + value.to_bytes(8, "little")


def _var_bytes(data: bytes) -> bytes:
    return _varint(len(data)) + data


@dataclass
class TxIn:
    """A transaction input; ``prev_txid`` is in internal byte order."""

    prev_txid: bytes
    prev_vout: int
    script_sig: bytes = b""
    sequence: int = 0xFFFFFFFF
    witness: list[bytes] = field(default_factory=list)


@dataclass
class TxOut:
    value: int
    script_pubkey: bytes


@dataclass
class Transaction:
    version: int
    inputs: list[TxIn]
    outputs: list[TxOut]
    locktime: int = 0

    def _legacy_bytes(self) -> bytes:
        parts = [self.version.to_bytes(4, "little", signed=True), _varint(len(self.inputs))]
        for txin in self.inputs:
            parts.append(bytes(txin.prev_txid))
            parts.append(txin.prev_vout.to_bytes(4, "little"))
            parts.append(_var_bytes(bytes(txin.script_sig)))
            parts.append(txin.sequence.to_bytes(4, "little"))
        parts.append(_varint(len(self.outputs)))
        for txout in self.outputs:
            parts.append(txout.value.to_bytes(8, "little", signed=True))
            parts.append(_var_bytes(bytes(txout.script_pubkey)))
        parts.append(self.locktime.to_bytes(4, "little"))
        return b"".join(parts)

    def txid(self) -> bytes:
        """Transaction id in internal byte order (witness data excluded)."""
        return sha256d(self._legacy_bytes())


@dataclass
class Block:
    header: bytes
    transactions: list[Transaction]

    def inputs(self) -> list[TxIn]:
        """Every input of every transaction, in block order."""
        return [txin for tx in self.transactions for txin in tx.inputs]


def _read_inputs(stream: BinaryIO, count: int) -> list[TxIn]:
    inputs = []
    for _ in range(count):
        prev_txid = _read(stream, 32)
        prev_vout = _read_int(stream, 4)
        script_sig = _read_var_bytes(stream)
        sequence = _read_int(stream, 4)
        inputs.append(TxIn(prev_txid, prev_vout, script_sig, sequence))
    return inputs


def _read_outputs(stream: BinaryIO) -> list[TxOut]:
    outputs = []
    for _ in range(_read_varint(stream)):
        value = _read_int(stream, 8, signed=True)
        outputs.append(TxOut(value, _read_var_bytes(stream)))
    return outputs


def parse_transaction(stream: BinaryIO) -> Transaction:
    """Read one transaction, with or without witness data, from a binary stream."""
    version = _read_int(stream, 4, signed=True)
    count = _read_varint(stream)
    segwit = False
    if count == 0:
        flag = _read(stream, 1)[0]
        if flag != 1:
            raise BlockchainError(f"unsupported segwit flag {flag}")
        segwit = True
        count = _read_varint(stream)
    inputs = _read_inputs(stream, count)
    outputs = _read_outputs(stream)
    if segwit:
        for txin in inputs:
            txin.witness = [_read_var_bytes(stream) for _ in range(_read_varint(stream))]
        if all(not txin.witness for txin in inputs):
            raise BlockchainError("segwit flag set but no witness present")
    locktime = _read_int(stream, 4)
    return Transaction(version, inputs, outputs, locktime)


def parse_block(data: bytes) -> Block:
    """Parse a fully serialized block; trailing bytes are an error."""
    stream = io.BytesIO(bytes(data))
    header = _read(stream, HEADER_SIZE)
    transactions = [parse_transaction(stream) for _ in range(_read_varint(stream))]
    if stream.read(1):
        raise BlockchainError("trailing data after block")
    return Block(header, transactions)