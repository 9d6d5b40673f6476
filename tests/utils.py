from __future__ import annotations

import datetime as dt
import enum
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Optional

from pyappconf import AppConfiguration
from pyappconf.xmldoc import DEFAULT_SECTION, ConfigDocument


class Color(enum.Enum):
    RED = 1
    GREEN = 2
    BLUE = 3


class Version:
    """Custom type restored through a ``from_string`` factory."""

    def __init__(self, major: int, minor: int) -> None:
        self.major = major
        self.minor = minor

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Version) and (self.major, self.minor) == (other.major, other.minor)

    @classmethod
    def from_string(cls, text: str) -> "Version":
        major, minor = text.split(".")
        return cls(int(major), int(minor))


@dataclass
class ServiceConfig(AppConfiguration):
    Name: str = "app"
    Retries: int = 3
    Tags: list[str] = field(default_factory=list)


@dataclass
class Secrets(AppConfiguration):
    User: str = "admin"
    Password: str = "changeme"


@dataclass
class KitchenSink:
    text: str = "hello"
    count: int = 0
    ratio: float = 0.0
    price: Decimal = Decimal("0")
    enabled: bool = False
    started: dt.datetime = dt.datetime(2000, 1, 1)
    day: dt.date = dt.date(2000, 1, 1)
    ident: uuid.UUID = uuid.UUID(int=0)
    color: Color = Color.RED
    blob: bytes = b""
    maybe_int: Optional[int] = 7
    maybe_text: str | None = None
    location: Path = Path("default")
    numbers: list[int] = field(default_factory=list)
    colors: list[Color] = field(default_factory=list)
    flags: tuple[bool, ...] = ()


def populated_sink() -> KitchenSink:
    return KitchenSink(
        text="héllo wörld & <friends>",
        count=-42,
        ratio=3.25,
        price=Decimal("19.99"),
        enabled=True,
        started=dt.datetime(2024, 2, 29, 13, 45, 10, 123456),
        day=dt.date(2023, 12, 31),
        ident=uuid.UUID("12345678-1234-5678-1234-567812345678"),
        color=Color.BLUE,
        blob=b"\x00\x01binary\xff",
        maybe_int=None,
        maybe_text="present",
        location=Path("/var/lib/app"),
        numbers=[1, 2, 3],
        colors=[Color.GREEN, Color.RED],
        flags=(True, False),
    )


def entries(path: Path, section: str = DEFAULT_SECTION) -> dict[str, str] | None:
    return ConfigDocument.load(path).section_values(section)
