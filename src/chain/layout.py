"""Versioned fixed-width layouts for Anchor accounts and events.

Each layout is a table of (field name, byte width, decode, encode) rows read
in declared order after the 8-byte discriminator. One generic routine decodes
any layout. A buffer whose length differs from the layout size is rejected,
so a program upgrade that adds fields fails loudly instead of misreading.
"""

import struct
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import IntEnum
from typing import Any

from solders.pubkey import Pubkey  # type: ignore[import-untyped]

from src.chain.constants import DISCRIMINATOR_SIZE


class DecodeError(ValueError):
    """Binary payload does not match the expected layout."""

    def __init__(self, layout: str, reason: str) -> None:
        super().__init__(f"{layout}: {reason}")
        self.layout = layout
        self.reason = reason


@dataclass(frozen=True)
class FieldSpec:
    name: str
    width: int
    decode: Callable[[bytes], Any]
    encode: Callable[[Any], bytes]


def _int_field(name: str, fmt: str) -> FieldSpec:
    size = struct.calcsize(fmt)
    return FieldSpec(
        name=name,
        width=size,
        decode=lambda raw: struct.unpack(fmt, raw)[0],
        encode=lambda value: struct.pack(fmt, value),
    )


def u8(name: str) -> FieldSpec:
    return _int_field(name, "<B")


def u16(name: str) -> FieldSpec:
    return _int_field(name, "<H")


def u32(name: str) -> FieldSpec:
    return _int_field(name, "<I")


def i32(name: str) -> FieldSpec:
    return _int_field(name, "<i")


def u64(name: str) -> FieldSpec:
    return _int_field(name, "<Q")


def i64(name: str) -> FieldSpec:
    return _int_field(name, "<q")


def u128(name: str) -> FieldSpec:
    return FieldSpec(
        name=name,
        width=16,
        decode=lambda raw: int.from_bytes(raw, "little"),
        encode=lambda value: int(value).to_bytes(16, "little"),
    )


def boolean(name: str) -> FieldSpec:
    def _decode(raw: bytes) -> bool:
        if raw[0] > 1:
            raise ValueError(f"invalid bool byte {raw[0]}")
        return raw[0] == 1

    return FieldSpec(
        name=name,
        width=1,
        decode=_decode,
        encode=lambda value: b"\x01" if value else b"\x00",
    )


def pubkey(name: str) -> FieldSpec:
    return FieldSpec(
        name=name,
        width=32,
        decode=lambda raw: str(Pubkey.from_bytes(raw)),
        encode=lambda value: bytes(Pubkey.from_string(value)),
    )


def fixed_str(name: str, width: int) -> FieldSpec:
    """Null-padded UTF-8 text, trimmed at the first zero byte."""

    def _decode(raw: bytes) -> str:
        end = raw.find(b"\x00")
        if end >= 0:
            raw = raw[:end]
        return raw.decode("utf-8", errors="replace").strip()

    def _encode(value: str) -> bytes:
        data = (value or "").encode("utf-8")
        if len(data) > width:
            raise ValueError(f"{name} exceeds {width} bytes")
        return data.ljust(width, b"\x00")

    return FieldSpec(name=name, width=width, decode=_decode, encode=_encode)


def enum_u8(name: str, enum_cls: type[IntEnum]) -> FieldSpec:
    def _decode(raw: bytes) -> IntEnum:
        try:
            return enum_cls(raw[0])
        except ValueError:
            raise ValueError(f"{name} tag {raw[0]} out of range") from None

    return FieldSpec(
        name=name,
        width=1,
        decode=_decode,
        encode=lambda value: bytes([int(value)]),
    )


def reserved(name: str, width: int) -> FieldSpec:
    return FieldSpec(
        name=name,
        width=width,
        decode=lambda raw: None,
        encode=lambda value: bytes(width),
    )


@dataclass(frozen=True)
class AccountLayout:
    """Ordered field table for one account or event kind."""

    name: str
    version: int
    discriminator: bytes
    fields: tuple[FieldSpec, ...]

    @property
    def size(self) -> int:
        return DISCRIMINATOR_SIZE + sum(f.width for f in self.fields)

    def offset_of(self, field_name: str) -> int:
        offset = DISCRIMINATOR_SIZE
        for f in self.fields:
            if f.name == field_name:
                return offset
            offset += f.width
        raise KeyError(field_name)

    def matches(self, data: bytes) -> bool:
        return data[:DISCRIMINATOR_SIZE] == self.discriminator

    def decode(self, data: bytes) -> dict[str, Any]:
        """Decode ``data`` into a field dict. Raises DecodeError, never returns partial."""
        label = f"{self.name}/v{self.version}"
        if len(data) != self.size:
            raise DecodeError(label, f"expected {self.size} bytes, got {len(data)}")
        if not self.matches(data):
            raise DecodeError(label, "discriminator mismatch")

        values: dict[str, Any] = {}
        offset = DISCRIMINATOR_SIZE
        for f in self.fields:
            raw = data[offset : offset + f.width]
            offset += f.width
            if f.name.startswith("_"):
                continue
            try:
                values[f.name] = f.decode(raw)
            except (ValueError, struct.error) as e:
                raise DecodeError(label, f"field {f.name}: {e}") from e
        return values

    def encode(self, values: Mapping[str, Any]) -> bytes:
        """Serialize ``values`` with this layout (fixtures, replay tooling)."""
        out = bytearray(self.discriminator)
        for f in self.fields:
            out += f.encode(values.get(f.name))
        return bytes(out)
