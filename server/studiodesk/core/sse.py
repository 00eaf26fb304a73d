from __future__ import annotations
import json
from typing import Any, Dict, Optional

DONE = "[DONE]"
DONE_EVENT = "data: " + DONE + "\n\n"
EVENT_STREAM = "text/event-stream"


def encode_event(payload: Dict[str, Any]) -> str:
    """Render one SSE frame: ``data: {json}`` followed by a blank line."""
    return "data: " + json.dumps(payload, ensure_ascii=False) + "\n\n"


def data_payload(line: str) -> Optional[str]:
    """Return the stripped payload of a ``data:`` line, or None for any other line.

    Lines must already be complete; callers read them through ``Response.aiter_lines()``,
    which carries partial lines over to the next network chunk.
    """
    if not line.startswith("data:"):
        return None
    return line[len("data:"):].strip()
