from dataclasses import dataclass, field
from typing import Any, List, Optional
from .models import CbEquivalent, CosmeticResources, ListMetadata, MatchResult, ParsedFilter, Resource, Result
from .errors import CbError, EMPTY_FILTER, FilterParseError, RequestError, ResourceError

@dataclass
class AppState:
    # single filter
    raw_filter_text: str = ""
    parsed_filter: Result[ParsedFilter, FilterParseError] = field(default_factory=lambda: Result.failure(EMPTY_FILTER))
    cb_equivalent: Optional[Result[CbEquivalent, CbError]] = None

    # filter list / engine
    raw_filter_list_text: str = ""
    pending_rebuild: Optional[int] = None
    engine: Any = None
    list_metadata: ListMetadata = field(default_factory=ListMetadata)
    resources: List[Resource] = field(default_factory=list)
    rebuild_count: int = 0
    rebuild_error: Optional[str] = None
    resources_error: Optional[ResourceError] = None
    export_error: Optional[str] = None

    # network query
    network_url: str = ""
    network_source_url: str = ""
    network_request_type: str = ""
    network_result: Optional[Result[MatchResult, RequestError]] = None
    network_result_stale: bool = False

    # cosmetic query
    cosmetic_url: str = ""
    cosmetic_result: Optional[CosmeticResources] = None

    @property
    def network_inputs_empty(self) -> bool:
        return not (self.network_url or self.network_source_url or self.network_request_type)
