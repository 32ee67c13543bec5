"""Server-sent events as dispatched by the hub."""

from __future__ import annotations

import re
from dataclasses import dataclass

_LINE_BREAK = re.compile(r"\r\n|\r|\n")


@dataclass
class Event:
    """A server-sent event, serialised in the ``text/event-stream`` format."""

    data: str = ""
    id: str = ""
    type: str = ""
    retry: int = 0

    def __str__(self) -> str:
        parts = []
        if self.type:
            parts.append(f"event: {self.type}\n")
        if self.retry:
            parts.append(f"retry: {self.retry}\n")
        data = _LINE_BREAK.sub("\ndata: ", self.data)
        parts.append(f"id: {self.id}\ndata: {data}\n\n")
        return "".join(parts)