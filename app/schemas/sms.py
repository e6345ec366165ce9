"""Schemas for the SMS-forwarder webhook."""
from dataclasses import dataclass
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


@dataclass(frozen=True)
class InboundNotification:
    """Canonical inbound message, whatever shape the forwarder app used."""

    sender: str
    body: str


class SmsForwarderPayload(BaseModel):
    """Payload posted by SMS/notification forwarder apps.

    Different apps name the fields differently: the message body arrives as
    ``key`` (app notifications), ``text`` or ``message``; the sender as
    ``from`` or ``sender``.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    from_: Optional[str] = Field(default=None, alias="from")
    sender: Optional[str] = None
    key: Optional[str] = None
    text: Optional[str] = None
    message: Optional[str] = None
    # Forwarder metadata, kept as sent: apps disagree on string vs number.
    sent_stamp: Optional[int | str] = Field(default=None, alias="sentStamp")
    received_stamp: Optional[int | str] = Field(default=None, alias="receivedStamp")
    sim: Optional[int | str] = None
    timestamp: Optional[int | str] = None
    secret: Optional[str] = None

    def to_inbound(self) -> InboundNotification:
        body = self.key or self.text or self.message or ""
        sender = self.sender or self.from_ or ""
        return InboundNotification(sender=sender.strip(), body=body.strip())
