from pydantic import BaseModel
from typing import Literal


class ChatMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str


def assistant_message(content: str) -> ChatMessage:
    return ChatMessage(role="assistant", content=content)
