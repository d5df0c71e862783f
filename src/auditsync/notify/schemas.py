"""Channel-neutral notification payloads."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel
from pydantic import Field


class NotificationField(BaseModel):
    title: str
    value: str
    short: bool = True


class Notification(BaseModel):
    """One message, rendered differently by each channel.

    Chat and email channels use ``text``/``title``/``fields``; the generic
    webhook posts ``event_payload`` verbatim.
    """

    event: str
    text: str
    title: str
    color: str = "#439FE0"
    fields: list[NotificationField] = Field(default_factory=list)
    footer: str | None = None
    ts: int | None = None
    event_payload: dict[str, Any] = Field(default_factory=dict)

    def plain_text(self) -> str:
        lines = [self.text, ""]
        lines.extend(f"{f.title}: {f.value}" for f in self.fields)
        if self.footer:
            lines.extend(["", self.footer])
        return "\n".join(lines)
