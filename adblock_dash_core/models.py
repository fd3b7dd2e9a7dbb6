from dataclasses import dataclass, field
from typing import Any, Dict, Generic, List, Optional, Tuple, TypeVar, Union

T = TypeVar("T")
E = TypeVar("E")


@dataclass(frozen=True)
class Result(Generic[T, E]):
    """Either a value or an error value; exactly one of them is set."""
    value: Optional[T] = None
    error: Optional[E] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "Result[T, E]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: E) -> "Result[T, E]":
        return cls(error=error)


@dataclass(frozen=True)
class NetworkFilter:
    raw: str
    pattern: str
    regex: str
    is_exception: bool = False
    is_regex: bool = False
    match_case: bool = False
    important: bool = False
    # content types the filter is restricted to / excluded from
    types: Tuple[str, ...] = ()
    not_types: Tuple[str, ...] = ()
    third_party: Optional[bool] = None
    domains: Tuple[str, ...] = ()
    not_domains: Tuple[str, ...] = ()
    redirect: Optional[str] = None
    generichide: bool = False
    elemhide: bool = False

    @property
    def hostname(self) -> Optional[str]:
        """Hostname anchored by a leading ``||``, if any."""
        if not self.pattern.startswith("||"):
            return None
        host = self.pattern[2:]
        for i, ch in enumerate(host):
            if ch in "^/*|:?":
                host = host[:i]
                break
        return host.lower() or None


@dataclass(frozen=True)
class CosmeticFilter:
    raw: str
    selector: str
    hostnames: Tuple[str, ...] = ()
    not_hostnames: Tuple[str, ...] = ()
    unhide: bool = False
    procedural: bool = False
    style: Optional[str] = None
    scriptlet: Optional[str] = None

    @property
    def generic(self) -> bool:
        return not self.hostnames


ParsedFilter = Union[NetworkFilter, CosmeticFilter]


@dataclass(frozen=True)
class CbRule:
    trigger: Dict[str, Any]
    action: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        return {"trigger": dict(self.trigger), "action": dict(self.action)}


@dataclass(frozen=True)
class CbEquivalent:
    rules: Tuple[CbRule, ...]

    @property
    def split_document(self) -> bool:
        return len(self.rules) > 1


@dataclass(frozen=True)
class Expires:
    amount: int
    unit: str  # "days" | "hours"

    def __str__(self) -> str:
        return f"{self.amount} {self.unit}"


@dataclass(frozen=True)
class ListMetadata:
    title: Optional[str] = None
    homepage: Optional[str] = None
    expires: Optional[Expires] = None
    redirect: Optional[str] = None
    accepted: int = 0
    rejected: int = 0


@dataclass(frozen=True)
class Resource:
    name: str
    content: str  # base64
    mime: Optional[str] = None
    template: bool = False
    aliases: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        kind: Any = "template" if self.template else {"mime": self.mime}
        return {"name": self.name, "aliases": list(self.aliases), "kind": kind, "content": self.content}


@dataclass(frozen=True)
class MatchResult:
    matched: bool
    important: bool = False
    filter: Optional[str] = None
    exception: Optional[str] = None
    redirect: Optional[str] = None


@dataclass
class CosmeticResources:
    hide_selectors: List[str] = field(default_factory=list)
    style_selectors: Dict[str, List[str]] = field(default_factory=dict)
    exceptions: List[str] = field(default_factory=list)
    injected_script: str = ""
    generichide: bool = False
