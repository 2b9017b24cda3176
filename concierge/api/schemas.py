from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from concierge.domain.entities.transcript import (
    ConversationMessage,
    MessageRole,
    ToolInvocation,
    ToolInvocationState,
    Transcript,
    new_message_id,
)


class ToolInvocationSchema(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    tool_call_id: str = Field(..., alias="toolCallId", min_length=1)
    tool_name: str = Field(..., alias="toolName", min_length=1)
    state: Literal["partial-call", "pending-call", "result"] = "result"
    args: dict[str, Any] | None = None
    result: dict[str, Any] | None = None
    is_error: bool = Field(False, alias="isError")

    def to_entity(self) -> ToolInvocation:
        return ToolInvocation(
            tool_call_id=self.tool_call_id,
            tool_name=self.tool_name,
            state=ToolInvocationState(self.state),
            args=self.args,
            result=self.result,
            is_error=self.is_error,
        )


class ChatMessageSchema(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str | None = None
    role: Literal["user", "assistant", "system"]
    content: str = ""
    tool_invocations: list[ToolInvocationSchema] = Field(default_factory=list, alias="toolInvocations")

    def to_entity(self) -> ConversationMessage:
        # Calls that never produced a result are dropped; the model cannot see half a tool exchange.
        invocations = [i.to_entity() for i in self.tool_invocations if i.state == "result"]
        return ConversationMessage(
            role=MessageRole(self.role),
            content=self.content,
            id=self.id or new_message_id(),
            tool_invocations=invocations,
        )


class ChatRequestSchema(BaseModel):
    messages: list[ChatMessageSchema]

    def to_transcript(self) -> Transcript:
        return Transcript(m.to_entity() for m in self.messages)
