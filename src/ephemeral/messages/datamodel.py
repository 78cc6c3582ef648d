# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

import enum
from collections.abc import MutableMapping
from io import BytesIO
from typing import ClassVar, Protocol, Self, runtime_checkable

__all__ = (  # noqa: RUF022
    # Protocols and types

    'WireData',
    'WireType',
    'DataWireProtocol',
    'DataWireAdapter',

    # Adapters and the adapter registry

    'AdapterRegistry',

    'VarintAdapter',
    'LengthDelimitedAdapter',
    'BytesAdapter',

    # Helpers

    'make_tag',
    'split_tag',
    'skip_field',
)


type WireData = bytes | bytearray | memoryview | BytesIO


class WireType(enum.IntEnum):
    """The protocol buffers wire types"""

    VARINT = 0
    I64 = 1
    LEN = 2
    SGROUP = 3
    EGROUP = 4
    I32 = 5


# Protocols

@runtime_checkable
class DataWireProtocol(Protocol):
    """The wire protocol for envelope data elements"""

    @classmethod
    def from_wire(cls, buffer: WireData) -> Self: ...

    def to_wire(self) -> bytes: ...

    def wire_length(self) -> int: ...


@runtime_checkable
class DataWireAdapter[T](Protocol):
    """Wire protocol adapter for an envelope data element of type T"""

    _abstract_: ClassVar[bool] = True
    _wire_type_: ClassVar[WireType]

    @staticmethod
    def from_wire(buffer: WireData) -> T: ...

    @staticmethod
    def to_wire(value: T, /) -> bytes: ...

    @staticmethod
    def wire_length(value: T, /) -> int: ...

    @staticmethod
    def validate(value: T, /) -> T: ...


class AdapterRegistry[T]:
    _adapters: ClassVar[MutableMapping[type, type[DataWireAdapter]]] = {}

    @classmethod
    def associate(cls, data_type: type[T], adapter: type[DataWireAdapter[T]]) -> None:
        if issubclass(data_type, DataWireProtocol):
            raise TypeError('Adapters for types that already implement DataWireProtocol must be explicitly provided with the field descriptors.')
        cls._adapters[data_type] = adapter

    @classmethod
    def get_adapter(cls, data_type: type[T]) -> type[DataWireAdapter[T]] | None:
        return cls._adapters.get(data_type, None)


# Adapters

class VarintAdapter:
    """Unsigned integers encoded as little endian groups of 7 bits (base 128 varints)"""

    _abstract_: ClassVar[bool] = False
    _wire_type_: ClassVar[WireType] = WireType.VARINT
    _bits_: ClassVar[int] = 64
    _maxlen_: ClassVar[int] = 10  # ceil(64 / 7)

    @classmethod
    def from_wire(cls, buffer: WireData) -> int:
        if not isinstance(buffer, BytesIO):
            buffer = BytesIO(buffer)
        value = 0
        for position in range(cls._maxlen_):
            data = buffer.read(1)
            if not data:
                raise ValueError('Insufficient data in buffer to extract a varint')
            value |= (data[0] & 0x7f) << (7 * position)
            if not data[0] & 0x80:
                break
        else:
            raise ValueError(f'Varint is longer than {cls._maxlen_} bytes')
        if value.bit_length() > cls._bits_:
            raise ValueError(f'Varint is out of range for unsigned {cls._bits_}-bits integer: {value!r}')
        return value

    @classmethod
    def to_wire(cls, value: int, /) -> bytes:
        data = bytearray()
        while value > 0x7f:
            data.append((value & 0x7f) | 0x80)
            value >>= 7
        data.append(value)
        return bytes(data)

    @classmethod
    def wire_length(cls, value: int, /) -> int:
        return max(1, (value.bit_length() + 6) // 7)

    @classmethod
    def validate(cls, value: int, /) -> int:
        if value < 0 or value.bit_length() > cls._bits_:
            raise ValueError(f'Value is out of range for unsigned {cls._bits_}-bits integer: {value!r}')
        return value


class LengthDelimitedAdapter:
    """Adapter for a bytes buffer of up to maxsize bytes, prefixed with its length as a varint"""

    _abstract_: ClassVar[bool] = True
    _wire_type_: ClassVar[WireType] = WireType.LEN
    _maxsize_: ClassVar[int] = NotImplemented

    def __init_subclass__(cls, *, maxsize: int = NotImplemented, **kw: object) -> None:
        if maxsize is not NotImplemented:
            cls._maxsize_ = maxsize
            cls._abstract_ = False
        super().__init_subclass__(**kw)

    @classmethod
    def from_wire(cls, buffer: WireData) -> bytes:
        if not isinstance(buffer, BytesIO):
            buffer = BytesIO(buffer)
        data_length = VarintAdapter.from_wire(buffer)
        if data_length > cls._maxsize_:
            raise ValueError(f'Data length is too big for length delimited bytes ({data_length} > {cls._maxsize_})')
        data = buffer.read(data_length)
        if len(data) < data_length:
            raise ValueError('Insufficient data in buffer to extract the length delimited bytes')
        return data

    @classmethod
    def to_wire(cls, value: bytes, /) -> bytes:
        return VarintAdapter.to_wire(len(value)) + value

    @classmethod
    def wire_length(cls, value: bytes, /) -> int:
        return VarintAdapter.wire_length(len(value)) + len(value)

    @classmethod
    def validate(cls, value: bytes | bytearray | memoryview, /) -> bytes:
        if not isinstance(value, bytes | bytearray | memoryview):
            raise TypeError(f'Value must be a bytes-like object, not {value.__class__.__qualname__!r}')
        if len(value) > cls._maxsize_:
            raise ValueError(f'Value is too long for length delimited bytes (max length is {cls._maxsize_}, value has {len(value)} bytes)')
        return bytes(value)


class BytesAdapter(LengthDelimitedAdapter, maxsize=2**31 - 1):
    pass


AdapterRegistry.associate(int, VarintAdapter)
AdapterRegistry.associate(bytes, BytesAdapter)


# Helpers

def make_tag(number: int, wire_type: WireType) -> int:
    return (number << 3) | wire_type


def split_tag(tag: int) -> tuple[int, WireType]:
    number, wire_type = tag >> 3, tag & 0x07
    if number == 0:
        raise ValueError('Invalid field number 0')
    try:
        return number, WireType(wire_type)
    except ValueError as exc:
        raise ValueError(f'Invalid wire type {wire_type} for field {number}') from exc


def skip_field(wire_type: WireType, buffer: BytesIO) -> None:
    """Skip over the value of an unknown field"""
    match wire_type:
        case WireType.VARINT:
            VarintAdapter.from_wire(buffer)
        case WireType.I64 | WireType.I32:
            size = 8 if wire_type is WireType.I64 else 4
            if len(buffer.read(size)) < size:
                raise ValueError(f'Insufficient data in buffer to skip a {size * 8}-bit field')
        case WireType.LEN:
            BytesAdapter.from_wire(buffer)
        case _:
            raise ValueError(f'Unsupported wire type: {wire_type.name}')
