# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

from inspect import Parameter, Signature
from io import BytesIO
from typing import ClassVar, Self, overload

from .datamodel import AdapterRegistry, DataWireAdapter, VarintAdapter, WireData, WireType, make_tag, skip_field, split_tag
from .exceptions import DecodeError

__all__ = 'Structure', 'Field'  # noqa: RUF022


class Structure:  # noqa: PLW1641
    """
    A message made of numbered, tagged fields.

    Fields are written in the order of their numbers. When reading, fields
    can appear in any order, unknown fields are skipped and if a field is
    present more than once the last value wins. A field that is missing
    from the wire takes its default value, or fails the decoding if it has
    no default (it is a required field).
    """

    __signature__: ClassVar[Signature] = Signature()

    _fields_: ClassVar[dict[str, 'Field']] = {}
    _numbers_: ClassVar[dict[int, 'Field']] = {}

    _all_arguments: ClassVar[frozenset[str]]
    _mandatory_arguments: ClassVar[frozenset[str]]
    _default_arguments: ClassVar[dict[str, object]]

    def __new__(cls, **kw: object) -> Self:
        if not cls._all_arguments.issuperset(kw):
            raise TypeError(f'Got an unexpected keyword argument {next(iter(set(kw) - cls._all_arguments))!r}')
        if not cls._mandatory_arguments.issubset(kw):
            raise TypeError(f'Missing a required keyword argument {next(iter(cls._mandatory_arguments - set(kw)))!r}')
        return super().__new__(cls)

    def __init__(self, **kw: object) -> None:
        kw = self._default_arguments | kw
        for name in self._fields_:
            setattr(self, name, kw[name])

    def __init_subclass__(cls, **kw: object) -> None:
        super().__init_subclass__(**kw)

        # all the fields on this structure (both inherited and locally defined)
        fields = cls._fields_ | {name: value for name, value in cls.__dict__.items() if isinstance(value, Field)}

        numbers: dict[int, Field] = {}
        for field in fields.values():
            if field.number in numbers:
                raise TypeError(f'Fields {numbers[field.number].name!r} and {field.name!r} of {cls.__qualname__!r} use the same number {field.number}')
            numbers[field.number] = field

        cls._fields_ = dict(sorted(fields.items(), key=lambda item: item[1].number))
        cls._numbers_ = numbers

        cls.__signature__ = Signature(parameters=[descriptor.signature_parameter for descriptor in cls._fields_.values()])
        cls._all_arguments = frozenset(cls.__signature__.parameters)
        cls._mandatory_arguments = frozenset(p.name for p in cls.__signature__.parameters.values() if p.default is Parameter.empty)
        cls._default_arguments = {p.name: p.default for p in cls.__signature__.parameters.values() if p.default is not Parameter.empty}

    def __repr__(self) -> str:
        return f'{self.__class__.__qualname__}({', '.join(f'{name}={getattr(self, name)!r}' for name in self._fields_)})'

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Structure):
            return type(self) is type(other) and all(getattr(self, name) == getattr(other, name) for name in self._fields_)
        return NotImplemented

    @classmethod
    def from_wire(cls, buffer: WireData) -> Self:
        if not isinstance(buffer, BytesIO):
            buffer = BytesIO(buffer)
        instance = super().__new__(cls)
        try:
            while True:
                position = buffer.tell()
                if not buffer.read(1):
                    break
                buffer.seek(position)
                number, wire_type = split_tag(VarintAdapter.from_wire(buffer))
                field = cls._numbers_.get(number)
                if field is None:
                    skip_field(wire_type, buffer)
                else:
                    field.from_wire(instance, buffer, wire_type)
        except DecodeError:
            raise
        except ValueError as exc:
            raise DecodeError(f'Failed to decode {cls.__qualname__} from wire: {exc}') from exc
        for name, field in cls._fields_.items():
            if name not in instance.__dict__:
                if field.default is NotImplemented:
                    raise DecodeError(f'Missing required field {cls.__qualname__}.{name}')
                instance.__dict__[name] = field.default
        return instance

    def to_wire(self) -> bytes:
        return b''.join(field.to_wire(self) for field in self._fields_.values())

    def wire_length(self) -> int:
        return sum(field.wire_length(self) for field in self._fields_.values())


class Field[T]:
    name: str | None
    type: type[T]
    number: int
    default: T
    adapter: type[DataWireAdapter[T]]

    _max_number_: ClassVar[int] = 2**29 - 1
    _reserved_numbers_: ClassVar[range] = range(19000, 20000)

    def __init__(self, field_type: type[T], /, *, number: int, default: T = NotImplemented, adapter: type[DataWireAdapter[T]] | None = None) -> None:
        if not 0 < number <= self._max_number_ or number in self._reserved_numbers_:
            raise ValueError(f'Invalid field number: {number!r}')
        self.name = None
        self.type = field_type
        self.number = number
        self.default = default
        self.provided_adapter = adapter
        if adapter is None:
            adapter = AdapterRegistry.get_adapter(field_type)
        if adapter is None:
            raise TypeError(f'No adapter is registered for {field_type.__qualname__!r} and none was provided')
        if adapter._abstract_:
            raise TypeError(f'Cannot use abstract adapter {adapter.__qualname__!r} (need to select a concrete implementation of it, usually one that defines its size)')
        self.adapter = adapter

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}({self.type.__qualname__}, number={self.number!r}, default={self.default!r})'

    def __set_name__(self, owner: type[Structure], name: str) -> None:
        if self.name is None:
            self.name = name
        elif name != self.name:
            raise TypeError(f'Cannot assign the same {self.__class__.__qualname__!r} to two different names: {self.name!r} and {name!r}')

    @overload
    def __get__(self, instance: None, owner: type[Structure]) -> Self: ...

    @overload
    def __get__(self, instance: Structure, owner: type[Structure] | None = None) -> T: ...

    def __get__(self, instance: Structure | None, owner: type[Structure] | None = None) -> Self | T:
        if instance is None:
            return self
        if self.name is None:
            raise TypeError(f'Cannot use {self.__class__.__qualname__!r} instance without calling __set_name__ on it.')
        try:
            return instance.__dict__[self.name]
        except KeyError as exc:
            raise AttributeError(f'Attribute {self.name!r} of object {instance.__class__.__qualname__!r} is not set') from exc

    def __set__(self, instance: Structure, value: T) -> None:
        if self.name is None:
            raise TypeError(f'Cannot use {self.__class__.__qualname__!r} instance without calling __set_name__ on it.')
        instance.__dict__[self.name] = self.adapter.validate(value)

    def __delete__(self, instance: Structure) -> None:
        raise AttributeError(f'Attribute {self.name!r} of {instance.__class__.__qualname__!r} object cannot be deleted')

    @property
    def tag(self) -> int:
        return make_tag(self.number, self.adapter._wire_type_)

    @property
    def signature_parameter(self) -> Parameter:
        assert self.name is not None  # noqa: S101 (used by type checkers)
        kwds = {} if self.default is NotImplemented else {'default': self.default}
        return Parameter(name=self.name, kind=Parameter.KEYWORD_ONLY, annotation=self.type, **kwds)

    def from_wire(self, instance: Structure, buffer: BytesIO, wire_type: WireType) -> None:
        if self.name is None:
            raise TypeError(f'Cannot use {self.__class__.__qualname__!r} instance without calling __set_name__ on it.')
        if wire_type is not self.adapter._wire_type_:
            raise DecodeError(f'Invalid wire type for the {instance.__class__.__qualname__}.{self.name} field: {wire_type.name} (expected {self.adapter._wire_type_.name})')
        try:
            instance.__dict__[self.name] = self.adapter.from_wire(buffer)
        except ValueError as exc:
            raise DecodeError(f'Failed to read the {instance.__class__.__qualname__}.{self.name} field from wire: {exc}') from exc

    def to_wire(self, instance: Structure) -> bytes:
        return VarintAdapter.to_wire(self.tag) + self.adapter.to_wire(self.__get__(instance))

    def wire_length(self, instance: Structure) -> int:
        return VarintAdapter.wire_length(self.tag) + self.adapter.wire_length(self.__get__(instance))
