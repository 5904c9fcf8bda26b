"""
Wire and domain models shared by the tracking client and the relay.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from .config import RelaySettings


class TrackedUser(BaseModel):
    """The signed-in identity that triggered an event."""

    email: Optional[str] = None
    phone: Optional[str] = None
    first_name: Optional[str] = Field(None, alias='firstName')
    last_name: Optional[str] = Field(None, alias='lastName')

    class Config:
        populate_by_name = True

    def to_user_data(self) -> Dict[str, str]:
        """Identity fields in the relay's camelCase form, unset ones omitted."""
        return self.model_dump(by_alias=True, exclude_none=True)


class EventRecord(BaseModel):
    """
    One logical business event.

    Built once per tracking call and handed to both delivery channels;
    ``event_id`` is what lets the platform merge the browser hit and the
    server hit into one occurrence.
    """

    event_name: str
    event_id: str
    params: Dict[str, Any] = Field(default_factory=dict)
    user_data: Dict[str, str] = Field(default_factory=dict)

    class Config:
        frozen = True

    def to_relay_payload(self, settings: RelaySettings) -> Dict[str, Any]:
        return {
            'eventName': self.event_name,
            'eventId': self.event_id,
            'eventData': dict(self.params),
            'userData': dict(self.user_data),
            'settings': settings.to_payload(),
        }


class ForwardEventRequest(BaseModel):
    """Body POSTed by the relay client to /forwardEvent."""

    event_name: str = Field(..., alias='eventName', min_length=1)
    event_id: Optional[str] = Field(None, alias='eventId')
    event_data: Optional[Dict[str, Any]] = Field(None, alias='eventData')
    user_data: Optional[Dict[str, Any]] = Field(None, alias='userData')
    settings: Dict[str, Any] = Field(default_factory=dict)

    class Config:
        populate_by_name = True


class ForwardEventResponse(BaseModel):
    success: bool
    message: str
