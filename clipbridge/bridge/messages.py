"""Wire model for messages crossing a context boundary.

Messages travel as JSON-shaped mappings (``to_wire``) and are validated on
receipt (``parse_message``). Each message type has exactly one model; the
``type`` field is the discriminator.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator


class MessageType(str, Enum):
    PING = "PING"
    CAPTURE = "CAPTURE"
    SEARCH = "SEARCH"
    GET_TAGS = "GET_TAGS"
    RESPONSE = "RESPONSE"
    STATUS_UPDATE = "STATUS_UPDATE"


class ContextTag(str, Enum):
    """Declared origin of a message on a shared channel."""
    EXTENSION_BRIDGE = "extension-bridge"
    HOST_PLUGIN = "host-plugin"


class CaptureMode(str, Enum):
    LINK = "link"
    SELECTION = "selection"
    FULLPAGE = "fullpage"


class DestinationType(str, Enum):
    JOURNAL = "journal"
    PAGE = "page"


class DestinationRef(BaseModel):
    """Where a capture should land: today's journal or an explicit page."""

    model_config = ConfigDict(populate_by_name=True)

    type: DestinationType = DestinationType.JOURNAL
    page_guid: Optional[str] = Field(default=None, alias="pageGuid")

    @property
    def is_journal(self) -> bool:
        return self.type == DestinationType.JOURNAL


@dataclass
class PageData:
    """What the extension knows about the page being captured."""
    url: str
    title: str
    content: str = ""
    images: List[str] = field(default_factory=list)


class CapturePayload(BaseModel):
    """One web excerpt to be stored in the host."""

    model_config = ConfigDict(populate_by_name=True)

    mode: CaptureMode = CaptureMode.LINK
    url: str = ""
    title: str = ""
    content: str = ""
    images: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    destination: DestinationRef = Field(default_factory=DestinationRef)

    @field_validator("url", "title", "content", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("images", "tags", mode="before")
    @classmethod
    def none_to_list(cls, v: Any) -> Any:
        return [] if v is None else v

    @classmethod
    def from_page(
        cls,
        page: PageData,
        tags: Optional[List[str]] = None,
        destination: Optional[DestinationRef] = None,
        mode: Optional[CaptureMode] = None,
    ) -> "CapturePayload":
        """Build a payload, falling back to link mode when nothing was selected."""
        if mode is None:
            has_selection = bool(page.content) or bool(page.images)
            mode = CaptureMode.SELECTION if has_selection else CaptureMode.LINK
        return cls(
            mode=mode,
            url=page.url,
            title=page.title,
            content=page.content,
            images=list(page.images),
            tags=list(tags or []),
            destination=destination or DestinationRef(),
        )


class BaseMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    correlation_id: str = Field(default="", alias="correlationId")
    source: ContextTag = ContextTag.EXTENSION_BRIDGE

    @property
    def message_type(self) -> MessageType:
        return MessageType(self.type)

    def with_correlation_id(self, correlation_id: str) -> "BaseMessage":
        return self.model_copy(update={"correlation_id": correlation_id})

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class PingMessage(BaseMessage):
    type: Literal["PING"] = "PING"


class CaptureMessage(BaseMessage):
    type: Literal["CAPTURE"] = "CAPTURE"
    payload: CapturePayload


class SearchMessage(BaseMessage):
    type: Literal["SEARCH"] = "SEARCH"
    query: str = ""


class GetTagsMessage(BaseMessage):
    type: Literal["GET_TAGS"] = "GET_TAGS"
    query: str = ""


class ResponseMessage(BaseMessage):
    type: Literal["RESPONSE"] = "RESPONSE"
    source: ContextTag = ContextTag.HOST_PLUGIN
    response: Any = None

    def to_wire(self) -> Dict[str, Any]:
        # A null response is meaningful, keep the key.
        wire = super().to_wire()
        wire.setdefault("response", None)
        return wire


class StatusUpdateMessage(BaseMessage):
    type: Literal["STATUS_UPDATE"] = "STATUS_UPDATE"
    source: ContextTag = ContextTag.HOST_PLUGIN
    status: Dict[str, Any] = Field(default_factory=dict)


Message = Annotated[
    Union[
        PingMessage,
        CaptureMessage,
        SearchMessage,
        GetTagsMessage,
        ResponseMessage,
        StatusUpdateMessage,
    ],
    Field(discriminator="type"),
]

_message_adapter = TypeAdapter(Message)


def parse_message(raw: Union[BaseMessage, Mapping[str, Any]]) -> BaseMessage:
    """Validate a received mapping into its message model.

    Raises pydantic.ValidationError for unknown types or malformed fields.
    """
    if isinstance(raw, BaseMessage):
        return raw
    return _message_adapter.validate_python(dict(raw))


def declared_type(raw: Union[BaseMessage, Mapping[str, Any]]) -> Optional[MessageType]:
    """The message type a mapping claims to be, or None if it is not one we know."""
    if isinstance(raw, BaseMessage):
        return raw.message_type
    try:
        return MessageType(raw.get("type"))
    except ValueError:
        return None
