from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class FilterTextChanged:
    text: str


@dataclass(frozen=True)
class FilterListTextChanged:
    text: str


@dataclass(frozen=True)
class DebounceElapsed:
    pass


@dataclass(frozen=True)
class NetworkUrlChanged:
    text: str


@dataclass(frozen=True)
class NetworkSourceChanged:
    text: str


@dataclass(frozen=True)
class NetworkTypeChanged:
    text: str


@dataclass(frozen=True)
class CosmeticUrlChanged:
    text: str


@dataclass(frozen=True)
class ResourcesLoaded:
    json_text: str


@dataclass(frozen=True)
class ExportRequested:
    pass


Event = Union[
    FilterTextChanged,
    FilterListTextChanged,
    DebounceElapsed,
    NetworkUrlChanged,
    NetworkSourceChanged,
    NetworkTypeChanged,
    CosmeticUrlChanged,
    ResourcesLoaded,
    ExportRequested,
]
