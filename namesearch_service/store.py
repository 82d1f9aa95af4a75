"""
Client-side search and chat state, as reducers over closed event sets

State objects are immutable; ``reduce``/``reduce_chat`` return a new state
for every event.
"""
from dataclasses import dataclass, field, replace
from typing import Optional, Tuple, Union

from .schemas import GoogleResult, GoogleSearchResponse, SearchInformation, SearchResult

MAX_AI_MESSAGES = 50


@dataclass(frozen=True)
class SearchProgress:
    total: int = 0
    completed: int = 0
    percentage: int = 0


def calculate_progress(total: int, completed: int) -> SearchProgress:
    """Clamp completed into 0..total and derive a rounded percentage"""
    safe_total = max(0, total)
    safe_completed = max(0, min(completed, safe_total))
    percentage = int(safe_completed / safe_total * 100 + 0.5) if safe_total else 0
    return SearchProgress(total=safe_total, completed=safe_completed, percentage=percentage)


@dataclass(frozen=True)
class SearchState:
    """Everything one search session has accumulated"""
    username: str = ""
    is_searching: bool = False
    results: Tuple[SearchResult, ...] = ()
    google_results: Tuple[GoogleResult, ...] = ()
    google_query: Optional[str] = None
    google_search_information: Optional[SearchInformation] = None
    google_error: Optional[str] = None
    progress: SearchProgress = field(default_factory=SearchProgress)
    error: Optional[str] = None


# Search events
@dataclass(frozen=True)
class SearchStarted:
    username: str


@dataclass(frozen=True)
class ResultsAppended:
    results: Tuple[SearchResult, ...]


@dataclass(frozen=True)
class ProgressTotalSet:
    total: int


@dataclass(frozen=True)
class ProgressAdvanced:
    count: int = 1


@dataclass(frozen=True)
class ProgressCompleted:
    pass


@dataclass(frozen=True)
class GoogleResponseSet:
    response: GoogleSearchResponse


@dataclass(frozen=True)
class GoogleErrorSet:
    error: Optional[str]


@dataclass(frozen=True)
class ErrorSet:
    error: Optional[str]


@dataclass(frozen=True)
class SearchStopped:
    pass


@dataclass(frozen=True)
class StateReset:
    pass


SearchEvent = Union[
    SearchStarted,
    ResultsAppended,
    ProgressTotalSet,
    ProgressAdvanced,
    ProgressCompleted,
    GoogleResponseSet,
    GoogleErrorSet,
    ErrorSet,
    SearchStopped,
    StateReset,
]


def reduce(state: SearchState, event: SearchEvent) -> SearchState:
    """Apply one event to the search state"""
    if isinstance(event, SearchStarted):
        # A new search replaces everything from the previous one
        return SearchState(username=event.username, is_searching=True)

    if isinstance(event, ResultsAppended):
        return replace(state, results=state.results + tuple(event.results))

    if isinstance(event, ProgressTotalSet):
        return replace(state, progress=calculate_progress(event.total, state.progress.completed))

    if isinstance(event, ProgressAdvanced):
        progress = calculate_progress(
            state.progress.total,
            state.progress.completed + max(0, event.count),
        )
        return replace(state, progress=progress)

    if isinstance(event, ProgressCompleted):
        return replace(state, progress=calculate_progress(state.progress.total, state.progress.total))

    if isinstance(event, GoogleResponseSet):
        return replace(
            state,
            google_results=tuple(event.response.items),
            google_query=event.response.query,
            google_search_information=event.response.search_information,
            google_error=None,
        )

    if isinstance(event, GoogleErrorSet):
        return replace(
            state,
            google_error=event.error,
            google_results=(),
            google_query=None,
            google_search_information=None,
        )

    if isinstance(event, ErrorSet):
        return replace(state, error=event.error, is_searching=False)

    if isinstance(event, SearchStopped):
        return replace(state, is_searching=False)

    if isinstance(event, StateReset):
        return SearchState()

    raise TypeError(f"Unknown search event: {event!r}")


# AI chat
@dataclass(frozen=True)
class ChatTurn:
    role: str
    content: str
    timestamp: float


@dataclass(frozen=True)
class ChatState:
    messages: Tuple[ChatTurn, ...] = ()
    is_streaming: bool = False
    error: Optional[str] = None


@dataclass(frozen=True)
class ChatMessageAdded:
    message: ChatTurn


@dataclass(frozen=True)
class ChatStreamingSet:
    is_streaming: bool


@dataclass(frozen=True)
class ChatErrorSet:
    error: Optional[str]


@dataclass(frozen=True)
class ChatCleared:
    pass


ChatEvent = Union[ChatMessageAdded, ChatStreamingSet, ChatErrorSet, ChatCleared]


def reduce_chat(state: ChatState, event: ChatEvent) -> ChatState:
    """Apply one event to the chat state"""
    if isinstance(event, ChatMessageAdded):
        # Keep only the most recent turns
        messages = (state.messages + (event.message,))[-MAX_AI_MESSAGES:]
        return replace(state, messages=messages)

    if isinstance(event, ChatStreamingSet):
        return replace(state, is_streaming=event.is_streaming)

    if isinstance(event, ChatErrorSet):
        return replace(state, error=event.error, is_streaming=False)

    if isinstance(event, ChatCleared):
        return replace(state, messages=())

    raise TypeError(f"Unknown chat event: {event!r}")
