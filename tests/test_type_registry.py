from __future__ import annotations

import dataclasses
import datetime
import enum
import threading
import types
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal
from typing import ClassVar, Final, NamedTuple

import pytest
from object_cloner import REGISTRY, TypeDescriptor, TypeRegistry


class Mode(enum.Enum):
    ON = "on"
    OFF = "off"


@dataclasses.dataclass(frozen=True)
class Coordinates:
    lat: float
    lon: float
    label: str | None = None


@dataclasses.dataclass(frozen=True)
class Tagged:
    tags: list[str]


@dataclasses.dataclass(frozen=True)
class Envelope:
    origin: Coordinates
    sent: datetime.datetime
    mode: Mode
    path: tuple[int, ...]


@dataclasses.dataclass
class Mutable:
    value: int = 0


class Money:
    __slots__ = ("_amount", "_currency")

    _amount: Final[int]
    _currency: Final[str]

    def __init__(self, amount: int = 0, currency: str = "EUR") -> None:
        self._amount = amount
        self._currency = currency


class Account:
    _id: Final[int]

    def __init__(self) -> None:
        self._id = 1


class PublicMoney:
    amount: Final[int]

    def __init__(self, amount: int = 0) -> None:
        self.amount = amount


@dataclasses.dataclass(frozen=True)
class Link:
    value: int
    next: Link | None = None


@dataclasses.dataclass(frozen=True)
class Ping:
    pong: Pong | None = None


@dataclasses.dataclass(frozen=True)
class Pong:
    ping: Ping | None = None


class Marker:
    __slots__ = ()


class Plain:
    pass


class Version(NamedTuple):
    major: int
    minor: int


class Base:
    shared: ClassVar[int] = 0
    name: str

    def __init__(self) -> None:
        self.name = ""


class Derived(Base):
    size: int

    def __init__(self) -> None:
        super().__init__()
        self.size = 0


class Secret:
    __slots__ = ("__token",)


class NeedsArgs:
    def __init__(self, size: int) -> None:
        self.size = size


class Flexible:
    def __init__(self, *args: object, size: int = 1, **kwargs: object) -> None:
        self.size = size


@pytest.fixture
def registry() -> TypeRegistry:
    return TypeRegistry()


@pytest.mark.parametrize(
    "cls", [int, str, bool, float, bytes, Decimal, datetime.datetime, object]
)
def test_well_known_types_are_immutable(registry: TypeRegistry, cls: type) -> None:
    assert registry.is_immutable(cls)


@pytest.mark.parametrize(
    "cls", [Coordinates, Envelope, Mode, Money, Marker, Version]
)
def test_sealed_types_are_immutable(registry: TypeRegistry, cls: type) -> None:
    assert registry.is_immutable(cls)


@pytest.mark.parametrize(
    "cls",
    [Tagged, Mutable, PublicMoney, Account, Plain, list, dict, tuple, bytearray],
)
def test_mutable_types(registry: TypeRegistry, cls: type) -> None:
    assert not registry.is_immutable(cls)


def test_self_referencing_type_does_not_recurse_forever(
    registry: TypeRegistry,
) -> None:
    assert registry.is_immutable(Link) is False


def test_mutually_referencing_types_classify_as_mutable(
    registry: TypeRegistry,
) -> None:
    assert registry.is_immutable(Ping) is False
    assert registry.is_immutable(Pong) is False


def test_fields_include_inherited_and_skip_class_vars(registry: TypeRegistry) -> None:
    fields = registry.fields(Derived)
    names = [field.name for field in fields]

    assert sorted(names) == ["name", "size"]
    owners = {field.name: field.owner for field in fields}
    assert owners == {"name": Base, "size": Derived}


def test_field_flags(registry: TypeRegistry) -> None:
    fields = {field.name: field for field in registry.fields(Money)}

    assert fields["_amount"].is_final
    assert fields["_amount"].is_private
    assert fields["_amount"].is_primitive
    assert fields["_amount"].declared_type is int

    envelope = {field.name: field for field in registry.fields(Envelope)}
    assert envelope["path"].is_array
    assert not envelope["origin"].is_array


def test_private_slots_use_mangled_names(registry: TypeRegistry) -> None:
    assert [field.name for field in registry.fields(Secret)] == ["_Secret__token"]


def test_fields_are_cached(registry: TypeRegistry) -> None:
    assert registry.fields(Derived) is registry.fields(Derived)


def test_allocators(registry: TypeRegistry) -> None:
    assert registry.allocator(Mutable) is Mutable
    assert registry.allocator(Flexible) is Flexible
    assert registry.allocator(NeedsArgs) is None
    assert registry.allocator(types.SimpleNamespace) is types.SimpleNamespace


def test_describe(registry: TypeRegistry) -> None:
    descriptor = registry.describe(Mutable)

    assert descriptor == TypeDescriptor(
        cls=Mutable,
        allocator=Mutable,
        immutable=False,
        fields=registry.fields(Mutable),
    )
    assert registry.describe(Mutable) is descriptor


def test_clear_keeps_the_seeds(registry: TypeRegistry) -> None:
    registry.is_immutable(Coordinates)
    registry.clear()

    assert registry.is_immutable(str)
    assert registry.is_immutable(Coordinates)


def test_concurrent_classification_agrees() -> None:
    registry = TypeRegistry()
    barrier = threading.Barrier(8)

    def classify(cls: type) -> bool:
        barrier.wait()
        return registry.is_immutable(cls)

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(classify, [Envelope] * 8))

    assert results == [True] * 8


def test_shared_registry_is_a_type_registry() -> None:
    assert isinstance(REGISTRY, TypeRegistry)
