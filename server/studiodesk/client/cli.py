"""Terminal chat front-end for the relay: ``python -m studiodesk.client.cli``."""
from __future__ import annotations
import argparse
import asyncio
import logging
import sys
from typing import List, Optional, TextIO

import httpx

from studiodesk.client.consumer import ChatStreamConsumer
from studiodesk.client.session import ChatSession, ChatTurn
from studiodesk.core.logging import setup_logging


class TerminalView:
    """Prints only the part of the latest assistant turn that has not been shown yet."""

    def __init__(self, out: TextIO = sys.stdout) -> None:
        self.out = out
        self._turn: Optional[ChatTurn] = None
        self._shown = 0

    def __call__(self, session: ChatSession) -> None:
        if not session.transcript:
            return
        turn = session.transcript[-1]
        if turn.role != "assistant":
            return
        if turn is not self._turn:
            if self._turn is not None and self._shown:
                self.out.write("\n")
            self._turn = turn
            self._shown = 0
            self.out.write("assistant> ")
        self.out.write(turn.content[self._shown:])
        self._shown = len(turn.content)
        self.out.flush()


async def run(url: str, timeout: float, out: TextIO = sys.stdout) -> None:
    session = ChatSession()
    view = TerminalView(out)
    async with httpx.AsyncClient(timeout=timeout) as client:
        consumer = ChatStreamConsumer(session, client, url=url, on_update=view)
        try:
            while True:
                try:
                    text = await asyncio.to_thread(input, "you> ")
                except EOFError:
                    break
                if text.strip() in ("/quit", "/exit"):
                    break
                await consumer.send(text)
                out.write("\n")
        finally:
            consumer.dismiss()


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Chat with the studio assistant through the relay.")
    parser.add_argument("--url", default="http://127.0.0.1:8000/api/chat", help="relay endpoint")
    parser.add_argument("--timeout", type=float, default=120.0, help="request timeout in seconds")
    parser.add_argument("-v", "--verbose", action="store_true", help="log skipped frames and errors")
    args = parser.parse_args(argv)

    setup_logging(logging.DEBUG if args.verbose else logging.WARNING)
    try:
        asyncio.run(run(args.url, args.timeout))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
