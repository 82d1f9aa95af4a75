"""
Pydantic schemas for Username Search Service

Wire names are camelCase; attributes are snake_case.
"""
from pydantic import BaseModel, Field, field_validator
from typing import Any, Dict, List, Literal, Optional

ResultStatus = Literal["all", "found", "not-found"]
SortBy = Literal["default", "response-time", "alphabetical"]
SortOrder = Literal["asc", "desc"]


# WhatsMyName stream records
class CheckResult(BaseModel):
    """Outcome of one platform existence check"""
    status: int
    check_type: str = Field(alias="checkType")
    is_exist: bool = Field(alias="isExist")
    response_time: int = Field(ge=0, alias="responseTime")
    message: Optional[str] = None
    url: Optional[str] = None
    url_main: Optional[str] = Field(None, alias="urlMain")
    response_url: Optional[str] = Field(None, alias="responseUrl")

    class Config:
        frozen = True
        populate_by_name = True


class SearchResult(BaseModel):
    """One platform existence check for a username"""
    source: str
    username: str
    url: str
    is_nsfw: bool = Field(False, alias="isNSFW")
    category: str = ""
    tags: List[str] = Field(default_factory=list)
    check_result: CheckResult = Field(alias="checkResult")

    class Config:
        frozen = True
        populate_by_name = True


class SearchMetadata(BaseModel):
    """Progress control record interleaved with results"""
    total: Optional[int] = None
    completed: Optional[bool] = None


# Filtering and sorting
class FilterOptions(BaseModel):
    """Filter bar state"""
    status: ResultStatus = "all"
    category: Optional[str] = None
    show_nsfw: bool = Field(True, alias="showNSFW")
    search_query: str = Field("", alias="searchQuery")

    class Config:
        populate_by_name = True


class SortOptions(BaseModel):
    """Sort selector state"""
    sort_by: SortBy = Field("default", alias="sortBy")
    order: SortOrder = "asc"

    class Config:
        populate_by_name = True


# Google Custom Search
class GoogleResult(BaseModel):
    """One web search hit"""
    title: str = ""
    link: str = ""
    display_link: str = Field("", alias="displayLink")
    snippet: str = ""
    formatted_url: Optional[str] = Field(None, alias="formattedUrl")

    class Config:
        populate_by_name = True


class SearchInformation(BaseModel):
    """Google search timing and hit count"""
    total_results: Optional[str] = Field(None, alias="totalResults")
    search_time: Optional[float] = Field(None, alias="searchTime")

    class Config:
        populate_by_name = True


class GoogleSearchResponse(BaseModel):
    """Reshaped Google Custom Search response"""
    items: List[GoogleResult] = Field(default_factory=list)
    search_information: Optional[SearchInformation] = Field(None, alias="searchInformation")
    query: Optional[str] = None

    class Config:
        populate_by_name = True

    @classmethod
    def from_upstream(cls, data: Dict[str, Any]) -> "GoogleSearchResponse":
        """Keep items, searchInformation and the echoed search terms"""
        queries = data.get("queries") or {}
        requests = queries.get("request") or [{}]
        return cls(
            items=data.get("items") or [],
            search_information=data.get("searchInformation"),
            query=(requests[0] or {}).get("searchTerms"),
        )


# AI chat
MAX_CHAT_MESSAGES = 50
MAX_CHAT_MESSAGE_LENGTH = 4000


class ChatMessage(BaseModel):
    """Single chat turn"""
    role: Literal["user", "assistant"]
    content: str = Field(min_length=1, max_length=MAX_CHAT_MESSAGE_LENGTH)


class ChatRequest(BaseModel):
    """AI analyze request"""
    messages: List[ChatMessage] = Field(min_length=1, max_length=MAX_CHAT_MESSAGES)
    username: Optional[str] = Field(None, min_length=1, max_length=100)

    @field_validator("messages")
    @classmethod
    def validate_turn_order(cls, v):
        """First turn is the user's and roles alternate"""
        if v[0].role != "user":
            raise ValueError("First message must be from the user")
        for previous, current in zip(v, v[1:]):
            if current.role == previous.role:
                raise ValueError("Messages must alternate between user and assistant")
        return v


# Responses
class ErrorResponse(BaseModel):
    """Error envelope"""
    error: str
    details: Optional[str] = None


class ServiceStatus(BaseModel):
    """Health of one upstream dependency"""
    name: str
    status: Literal["available", "unavailable"]
    configured: bool
    model: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check document"""
    status: Literal["healthy", "degraded", "unhealthy"]
    timestamp: str
    version: str
    environment: str
    services: Dict[str, ServiceStatus]
