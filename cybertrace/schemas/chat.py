"""Request/response schemas and message parts.

Parts use the field names of the AI SDK ``useChat`` client (camelCase on the
wire) so messages round-trip between the browser, the database and the
model unchanged.
"""

from datetime import datetime
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Role = Literal["user", "assistant", "system"]
ToolInvocationState = Literal["partial-call", "call", "result"]


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class TextPart(WireModel):
    type: Literal["text"] = "text"
    text: str


class ReasoningPart(WireModel):
    type: Literal["reasoning"] = "reasoning"
    reasoning: str


class StepStartPart(WireModel):
    type: Literal["step-start"] = "step-start"


class ToolInvocation(WireModel):
    state: ToolInvocationState
    tool_call_id: str
    tool_name: str
    args: dict[str, Any] = Field(default_factory=dict)
    result: Optional[Any] = None
    step: Optional[int] = None


class ToolInvocationPart(WireModel):
    type: Literal["tool-invocation"] = "tool-invocation"
    tool_invocation: ToolInvocation


Part = Annotated[
    Union[TextPart, ReasoningPart, StepStartPart, ToolInvocationPart],
    Field(discriminator="type"),
]


class ChatMessage(BaseModel):
    """A message as sent by the chat client."""

    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = None
    role: Role
    content: str = ""
    parts: list[Part] = Field(default_factory=list)
    attachments: Optional[list[dict[str, Any]]] = Field(
        default=None, alias="experimental_attachments"
    )

    def text(self) -> str:
        """Plain text of the message, falling back to its text parts."""
        if self.content:
            return self.content
        return "".join(p.text for p in self.parts if isinstance(p, TextPart))


class ChatRequest(BaseModel):
    messages: list[ChatMessage] = Field(min_length=1)
    id: Optional[str] = None


class ChatCreate(BaseModel):
    title: Optional[str] = None


class ChatUpdate(BaseModel):
    title: str = Field(min_length=1, max_length=200)


class ChatResponse(BaseModel):
    id: str
    user_id: str
    title: Optional[str]
    visibility: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class MessageResponse(BaseModel):
    id: str
    chat_id: str
    role: str
    content: str
    parts: list[dict[str, Any]] = Field(default_factory=list)
    attachments: Optional[list[dict[str, Any]]] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ChatDetailResponse(ChatResponse):
    messages: list[MessageResponse] = Field(default_factory=list)
