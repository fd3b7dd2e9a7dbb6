from dataclasses import dataclass


@dataclass(frozen=True)
class FilterParseError:
    # kind: "empty" | "unsupported" | "network" | "cosmetic"
    kind: str
    message: str = ""

    def __str__(self) -> str:
        return self.message or self.kind


@dataclass(frozen=True)
class CbError:
    kind: str
    message: str = ""

    def __str__(self) -> str:
        return self.message or self.kind


@dataclass(frozen=True)
class RequestError:
    message: str

    def __str__(self) -> str:
        return self.message


@dataclass(frozen=True)
class ResourceError:
    message: str

    def __str__(self) -> str:
        return self.message


EMPTY_FILTER = FilterParseError(kind="empty")


class EngineBuildError(Exception):
    """Raised by the engine adapter when a filter list cannot be compiled."""
