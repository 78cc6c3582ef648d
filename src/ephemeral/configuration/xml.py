# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

from binascii import a2b_hex as hexdecode
from binascii import b2a_hex as hexencode
from collections.abc import MutableMapping
from inspect import Parameter, Signature
from os import PathLike
from pathlib import Path
from typing import ClassVar, Protocol, Self, overload

from lxml import etree

__all__ = (  # noqa: RUF022
    'Namespace',
    'XMLElement',
    'DataElement',

    'DataAdapter',
    'AdapterRegistry',
    'BooleanAdapter',
    'HexBinaryAdapter',
    'StringAdapter',
)


# noinspection PyProtectedMember
type ETreeElement = etree._Element  # noqa: SLF001


class Namespace(str):
    __slots__ = 'prefix',  # noqa: COM818

    prefix: str | None

    def __new__(cls, namespace: str, /, *, prefix: str | None = None) -> Self:
        self = super().__new__(cls, namespace)
        self.prefix = prefix
        return self

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}({super().__repr__()}, prefix={self.prefix!r})'


# Data adapters

class DataAdapter[T](Protocol):
    @staticmethod
    def xml_parse(value: str, /) -> T: ...

    @staticmethod
    def xml_build(value: T, /) -> str: ...


class AdapterRegistry[T]:
    _adapters: ClassVar[MutableMapping[type, type[DataAdapter]]] = {}

    @classmethod
    def associate(cls, data_type: type[T], adapter: type[DataAdapter[T]]) -> None:
        cls._adapters[data_type] = adapter

    @classmethod
    def get_adapter(cls, data_type: type[T]) -> type[DataAdapter[T]] | None:
        return cls._adapters.get(data_type, None)


class StringAdapter:
    @staticmethod
    def xml_parse(value: str) -> str:
        return value.strip()

    @staticmethod
    def xml_build(value: str) -> str:
        return value


class HexBinaryAdapter:
    @staticmethod
    def xml_parse(value: str) -> bytes:
        return hexdecode(value.strip())

    @staticmethod
    def xml_build(value: bytes) -> str:
        return hexencode(value).decode('ascii')


class BooleanAdapter:
    @staticmethod
    def xml_parse(value: str) -> bool:
        match value.strip():
            case 'true' | '1':
                return True
            case 'false' | '0':
                return False
            case _:
                raise ValueError(f'Invalid boolean value: {value!r}')

    @staticmethod
    def xml_build(value: bool) -> str:  # noqa: FBT001
        return 'true' if value else 'false'


AdapterRegistry.associate(str, StringAdapter)
AdapterRegistry.associate(bool, BooleanAdapter)
AdapterRegistry.associate(bytes, HexBinaryAdapter)


# Elements

class XMLElement:
    """
    An XML element whose children are simple data elements.

    The element name and namespace are given as class parameters:

    class MyElement(XMLElement, name=..., namespace=...):
        ...
    """

    _name_: ClassVar[str | None] = None
    _namespace_: ClassVar[Namespace | None] = None

    _tag_: ClassVar[str | None] = None
    _fields_: ClassVar[dict[str, 'DataElement']] = {}

    __signature__: ClassVar[Signature] = Signature()

    _all_arguments: ClassVar[frozenset[str]]
    _mandatory_arguments: ClassVar[frozenset[str]]
    _default_arguments: ClassVar[dict[str, object]]

    def __new__(cls, **kw: object) -> Self:
        if cls._tag_ is None:
            raise TypeError(f'Cannot instantiate abstract class {cls.__qualname__!r} that does not specify a name')
        if not cls._all_arguments.issuperset(kw):
            raise TypeError(f'got an unexpected keyword argument {next(iter(set(kw) - cls._all_arguments))!r}')
        if not cls._mandatory_arguments.issubset(kw):
            raise TypeError(f'missing a required keyword argument {next(iter(cls._mandatory_arguments - set(kw)))!r}')
        return super().__new__(cls)

    def __init__(self, **kw: object) -> None:
        kw = self._default_arguments | kw
        for name in self._fields_:
            setattr(self, name, kw[name])

    def __init_subclass__(cls, name: str | None = None, namespace: Namespace | None = None, **kw: object) -> None:
        super().__init_subclass__(**kw)

        if name is not None:
            cls._name_ = name
        if namespace is not None:
            cls._namespace_ = namespace

        if cls._name_ is not None:
            cls._tag_ = cls._make_tag(cls._name_)

        fields = cls._fields_ | {name: value for name, value in cls.__dict__.items() if isinstance(value, DataElement)}
        for field in fields.values():
            field.tag = cls._make_tag(field.xml_name)

        cls._fields_ = fields
        cls.__signature__ = Signature(parameters=[descriptor.signature_parameter for descriptor in fields.values()])
        cls._all_arguments = frozenset(cls.__signature__.parameters)
        cls._mandatory_arguments = frozenset(p.name for p in cls.__signature__.parameters.values() if p.default is Parameter.empty)
        cls._default_arguments = {p.name: p.default for p in cls.__signature__.parameters.values() if p.default is not Parameter.empty}

    def __repr__(self) -> str:
        return f'{self.__class__.__qualname__}({', '.join(f'{name}={getattr(self, name)!r}' for name in self._fields_)})'

    def __eq__(self, other: object) -> bool:
        if isinstance(other, XMLElement):
            return type(self) is type(other) and all(getattr(self, name) == getattr(other, name) for name in self._fields_)
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    @classmethod
    def _make_tag(cls, name: str) -> str:
        return f'{{{cls._namespace_}}}{name}' if cls._namespace_ is not None else name

    @classmethod
    def from_xml(cls, element: ETreeElement) -> Self:
        if cls._tag_ is None:
            raise TypeError(f'Cannot instantiate abstract class {cls.__qualname__} that does not specify a name')
        if element.tag != cls._tag_:
            raise ValueError(f'The element tag does not match the {cls.__qualname__} element tag: {element.tag!r} != {cls._tag_!r}')
        instance = super().__new__(cls)
        for field in cls._fields_.values():
            field.from_xml(instance, element)
        return instance

    @classmethod
    def from_string(cls, document: str | bytes) -> Self:
        parser = etree.XMLParser(resolve_entities=False, no_network=True, remove_comments=True)
        try:
            element = etree.fromstring(document.encode() if isinstance(document, str) else document, parser=parser)
        except etree.XMLSyntaxError as exc:
            raise ValueError(f'Invalid {cls.__qualname__} document: {exc}') from exc
        return cls.from_xml(element)

    @classmethod
    def from_file(cls, path: str | PathLike[str]) -> Self:
        return cls.from_string(Path(path).expanduser().read_bytes())

    def to_xml(self) -> ETreeElement:
        nsmap = {self._namespace_.prefix: self._namespace_} if self._namespace_ is not None else None
        element = etree.Element(self._tag_, nsmap=nsmap)  # type: ignore[arg-type]  # lxml stubs are a mess
        for field in self._fields_.values():
            field.to_xml(self, element)
        return element

    def to_string(self, *, pretty_print: bool = True) -> str:
        return etree.tostring(self.to_xml(), encoding='unicode', pretty_print=pretty_print)


class DataElement[T]:
    """
    A child element holding a single value.

    An element without a default is mandatory. The XML element name defaults
    to the attribute name with underscores replaced by dashes.
    """

    name: str | None
    xml_name: str
    tag: str
    type: type[T]
    default: T
    adapter: type[DataAdapter[T]]

    def __init__(self, data_type: type[T], /, *, name: str | None = None, default: T = NotImplemented, adapter: type[DataAdapter[T]] | None = None) -> None:
        self.name = None
        self.xml_name = name  # type: ignore[assignment]  # resolved in __set_name__
        self.type = data_type
        self.default = default
        if adapter is None:
            adapter = AdapterRegistry.get_adapter(data_type)
        if adapter is None:
            raise TypeError(f'No XML adapter is registered for {data_type.__qualname__!r} and none was provided')
        self.adapter = adapter

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}({self.type.__qualname__}, name={self.xml_name!r}, default={self.default!r})'

    def __set_name__(self, owner: type[XMLElement], name: str) -> None:
        if self.name is None:
            self.name = name
            if self.xml_name is None:
                self.xml_name = name.replace('_', '-')
        elif name != self.name:
            raise TypeError(f'cannot assign the same {self.__class__.__name__} descriptor to two different names: {self.name} and {name}')

    @overload
    def __get__(self, instance: None, owner: type[XMLElement]) -> Self: ...

    @overload
    def __get__(self, instance: XMLElement, owner: type[XMLElement] | None = None) -> T: ...

    def __get__(self, instance: XMLElement | None, owner: type[XMLElement] | None = None) -> Self | T:
        if instance is None:
            return self
        try:
            return instance.__dict__[self.name]
        except KeyError as exc:
            raise AttributeError(f'mandatory element {self.xml_name!r} is missing') from exc

    def __set__(self, instance: XMLElement, value: T) -> None:
        if value is None and self.default is not None:
            raise TypeError(f'element {self.xml_name!r} cannot be None')
        if value is not None and not isinstance(value, self.type):
            raise TypeError(f'element {self.xml_name!r} must be of type {self.type.__qualname__}')
        instance.__dict__[self.name] = value

    def __delete__(self, instance: XMLElement) -> None:
        raise AttributeError(f'element {self.xml_name!r} cannot be deleted')

    @property
    def signature_parameter(self) -> Parameter:
        assert self.name is not None  # noqa: S101 (used by type checkers)
        kwds = {} if self.default is NotImplemented else {'default': self.default}
        return Parameter(name=self.name, kind=Parameter.KEYWORD_ONLY, annotation=self.type, **kwds)

    def from_xml(self, instance: XMLElement, element: ETreeElement) -> None:
        """Fill in the instance's field value from its corresponding child element"""
        children = [child for child in element if child.tag == self.tag]
        if len(children) > 1:
            raise ValueError(f'Excess elements for {self.xml_name!r}')
        if not children:
            if self.default is NotImplemented:
                raise ValueError(f'Missing mandatory element {self.xml_name!r}')
            instance.__dict__[self.name] = self.default
            return
        try:
            instance.__dict__[self.name] = self.adapter.xml_parse(children[0].text or '')
        except ValueError as exc:
            raise ValueError(f'Invalid value for the {self.xml_name!r} element: {exc}') from exc

    def to_xml(self, instance: XMLElement, element: ETreeElement) -> None:
        value = self.__get__(instance)
        if value is not None:
            etree.SubElement(element, self.tag).text = self.adapter.xml_build(value)
