"""Minimal Bitcoin script parsing and template matching."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass

OP_0 = 0x00
OP_PUSHDATA1 = 0x4C
OP_PUSHDATA2 = 0x4D
OP_PUSHDATA4 = 0x4E
OP_1 = 0x51
OP_DUP = 0x76
OP_EQUAL = 0x87
OP_EQUALVERIFY = 0x88
OP_HASH160 = 0xA9
OP_CHECKSIG = 0xAC


@dataclass(frozen=True)
class Instruction:
    """One script opcode; ``data`` is set for push operations."""

    opcode: int
    data: bytes | None = None


class Script:
    """An immutable byte script."""

    def __init__(self, data: bytes | Script = b""):
        self.data = data.data if isinstance(data, Script) else bytes(data)

    def __len__(self) -> int:
        return len(self.data)

    def __bytes__(self) -> bytes:
        return self.data

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Script) and other.data == self.data

    def __hash__(self) -> int:
        return hash(self.data)

    def __repr__(self) -> str:
        return f"Script({self.data.hex()!r})"

    def instructions(self) -> Iterator[Instruction]:
        """Yield instructions, stopping at the first malformed push."""
        data = self.data
        pos = 0
        while pos < len(data):
            op = data[pos]
            pos += 1
            if op > OP_PUSHDATA4:
                yield Instruction(op)
                continue
            if op < OP_PUSHDATA1:
                size = op
            else:
                width = {OP_PUSHDATA1: 1, OP_PUSHDATA2: 2, OP_PUSHDATA4: 4}[op]
                if pos + width > len(data):
                    return
                size = int.from_bytes(data[pos : pos + width], "little")
                pos += width
            if pos + size > len(data):
                return
            yield Instruction(op, data[pos : pos + size])
            pos += size

    def pushes(self) -> Iterator[bytes]:
        """Yield the data of every push instruction."""
        for instruction in self.instructions():
            if instruction.data is not None:
                yield instruction.data

    def is_p2tr(self) -> bool:
        d = self.data
        return len(d) == 34 and d[0] == OP_1 and d[1] == 0x20

    def is_p2wpkh(self) -> bool:
        d = self.data
        return len(d) == 22 and d[0] == OP_0 and d[1] == 0x14

    def is_p2sh(self) -> bool:
        d = self.data
        return len(d) == 23 and d[0] == OP_HASH160 and d[1] == 0x14 and d[22] == OP_EQUAL

    def is_p2pkh(self) -> bool:
        d = self.data
        return (
            len(d) == 25
            and d[0] == OP_DUP
            and d[1] == OP_HASH160
            and d[2] == 0x14
            and d[23] == OP_EQUALVERIFY
            and d[24] == OP_CHECKSIG
        )

    def is_p2pk(self) -> bool:
        d = self.data
        return (len(d) == 35 and d[0] == 0x21 and d[34] == OP_CHECKSIG) or (
            len(d) == 67 and d[0] == 0x41 and d[66] == OP_CHECKSIG
        )