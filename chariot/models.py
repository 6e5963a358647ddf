from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict


class CreateOrContinueConversation(BaseModel):
    """
    Body of ``POST /conversations``.

    When ``conversation_id`` is set the existing conversation is continued,
    otherwise the API creates a new one and reports its id in the stream.
    Fields the API adds later pass through untouched.
    """
    model_config = ConfigDict(extra="allow", frozen=True)

    message: str
    application_id: str
    conversation_id: str | None = None
    stream: bool = False

    def as_stream_request(self) -> CreateOrContinueConversation:
        """Copy of this request with the stream flag forced on."""
        return self.model_copy(update={"stream": True})


# Dicts are validated inside the stream task so a bad request ends as error + end
ConversationRequest = CreateOrContinueConversation | dict[str, Any]


def stream_request(conversation: ConversationRequest) -> ConversationRequest:
    """Copy of ``conversation`` with the stream flag forced on."""
    if isinstance(conversation, CreateOrContinueConversation):
        return conversation.as_stream_request()
    return {**conversation, "stream": True}


def conversation_id_of(conversation: ConversationRequest) -> str | None:
    if isinstance(conversation, CreateOrContinueConversation):
        return conversation.conversation_id
    return conversation.get("conversation_id")
