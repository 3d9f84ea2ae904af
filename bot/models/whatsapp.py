from typing import List, Optional
from pydantic import BaseModel, Field

from .trade import ChatMessage


class MessageText(BaseModel):
    body: str = ""


class Message(BaseModel):
    from_: str = Field(alias="from")
    text: Optional[MessageText] = None


class ChangeValue(BaseModel):
    messages: List[Message] = []


class Change(BaseModel):
    value: ChangeValue


class Entry(BaseModel):
    changes: List[Change] = []


class WebhookPayload(BaseModel):
    """Subset of the WhatsApp Cloud API notification we care about"""
    entry: List[Entry] = []

    def chat_messages(self) -> List[ChatMessage]:
        messages = []
        for entry in self.entry:
            for change in entry.changes:
                for message in change.value.messages:
                    text = message.text.body if message.text else ""
                    messages.append(ChatMessage(sender_id=message.from_, text=text))
        return messages
