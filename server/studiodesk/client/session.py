from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

# Distance from the bottom (px) that still counts as "at the bottom"
NEAR_BOTTOM_PX = 100


@dataclass
class ChatTurn:
    role: str
    content: str
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class AutoScroll:
    """Tracks whether the transcript view should follow new output."""

    follow: bool = True

    def on_scroll(self, scroll_top: float, scroll_height: float, client_height: float) -> None:
        self.follow = scroll_height - scroll_top - client_height < NEAR_BOTTOM_PX

    def reset(self) -> None:
        self.follow = True


class ChatSession:
    """State of one open chat panel.

    Created when the panel opens and dropped when it closes. Once closed,
    every mutation is ignored so a late reply cannot touch a dismissed view.
    """

    def __init__(self) -> None:
        self.transcript: List[ChatTurn] = []
        self.loading = False
        self.closed = False
        self.autoscroll = AutoScroll()
        self._in_flight: Optional[ChatTurn] = None

    @property
    def in_flight(self) -> Optional[ChatTurn]:
        return self._in_flight

    def add_user_turn(self, text: str) -> Optional[ChatTurn]:
        if self._in_flight is not None:
            raise RuntimeError("cannot add a user turn while a reply is streaming")
        return self._append(ChatTurn(role="user", content=text))

    def add_assistant_turn(self, text: str) -> Optional[ChatTurn]:
        return self._append(ChatTurn(role="assistant", content=text))

    def begin_reply(self) -> Optional[ChatTurn]:
        turn = self._append(ChatTurn(role="assistant", content=""))
        self._in_flight = turn
        return turn

    def append_delta(self, delta: str) -> None:
        if self.closed or self._in_flight is None:
            return
        self._in_flight.content += delta

    def end_reply(self) -> None:
        self._in_flight = None

    def close(self) -> None:
        self.closed = True
        self._in_flight = None
        self.transcript.clear()

    def _append(self, turn: ChatTurn) -> Optional[ChatTurn]:
        if self.closed:
            return None
        self.transcript.append(turn)
        return turn
