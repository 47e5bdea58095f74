"""Twitch IRC chat source.

Reads a channel's chat over IRC-over-TLS and turns PRIVMSG lines into
ChatEvents. Without a nickname/token it logs in anonymously as
justinfanNNNNNN, which is read-only and needs no credentials.
"""

import asyncio
import random
import uuid
from datetime import datetime, timezone
from typing import Dict, Optional, Tuple

from chat_voice_bot.interfaces.events import (
    ChatEvent,
    ChatEventCallback,
    ChatSource,
    ConnectionStatus,
    StatusCallback,
)
from chat_voice_bot.logging_config import get_logger

logger = get_logger(__name__)

ANONYMOUS_PASSWORD = "SCHMOOPIIE"

_TAG_ESCAPES = {"\\:": ";", "\\s": " ", "\\\\": "\\", "\\r": "\r", "\\n": "\n"}


def anonymous_nickname() -> str:
    return f"justinfan{random.randint(100000, 999999)}"


def _unescape_tag(value: str) -> str:
    if "\\" not in value:
        return value
    out = []
    i = 0
    while i < len(value):
        pair = value[i:i + 2]
        if pair in _TAG_ESCAPES:
            out.append(_TAG_ESCAPES[pair])
            i += 2
        elif value[i] == "\\":
            i += 1
        else:
            out.append(value[i])
            i += 1
    return "".join(out)


def split_tags(raw: str) -> Tuple[Dict[str, str], str]:
    """Split the IRCv3 tag block off a raw line."""
    if raw.startswith("@") and " " in raw:
        tags_part, remainder = raw.split(" ", 1)
        tags = {}
        for pair in tags_part[1:].split(";"):
            if "=" in pair:
                k, v = pair.split("=", 1)
                tags[k] = _unescape_tag(v)
            elif pair:
                tags[pair] = ""
        return tags, remainder
    return {}, raw


def split_prefix_and_command(raw: str) -> Tuple[str, str, Tuple[str, ...]]:
    """Split an untagged IRC line into (prefix, command, params)."""
    prefix = ""
    rest = raw
    if raw.startswith(":"):
        if " " in raw:
            prefix, rest = raw[1:].split(" ", 1)
        else:
            prefix = raw[1:]
            rest = ""

    if " :" in rest:
        middle, trailing = rest.split(" :", 1)
        parts = middle.split()
        if not parts:
            return prefix, "", tuple()
        return prefix, parts[0], tuple(parts[1:] + [trailing])

    parts = rest.split()
    if not parts:
        return prefix, "", tuple()
    return prefix, parts[0], tuple(parts[1:])


def parse_privmsg(raw: str) -> Optional[ChatEvent]:
    """Parse a PRIVMSG line into a ChatEvent (None for any other line)."""
    tags, remainder = split_tags(raw)
    prefix, command, params = split_prefix_and_command(remainder)
    if command != "PRIVMSG" or len(params) < 2:
        return None

    username = prefix.split("!", 1)[0] if "!" in prefix else prefix
    if not username:
        return None

    timestamp = datetime.now(timezone.utc)
    sent_ts = tags.get("tmi-sent-ts")
    if sent_ts and sent_ts.isdigit():
        timestamp = datetime.fromtimestamp(int(sent_ts) / 1000.0, tz=timezone.utc)

    return ChatEvent(
        id=tags.get("id") or uuid.uuid4().hex,
        username=username,
        display_name=tags.get("display-name") or username,
        message=params[1].strip(),
        timestamp=timestamp,
        color=tags.get("color") or None,
    )


class TwitchChatSource(ChatSource):
    """Twitch IRC client delivering ChatEvents.

    Attributes:
        channel: Channel name without '#'.
        nickname: Login name (anonymous justinfan name if None).
        reconnect_delay: Seconds to wait before reconnecting (None disables).
    """

    def __init__(
        self,
        channel: str,
        nickname: str | None = None,
        oauth_token: str | None = None,
        host: str = "irc.chat.twitch.tv",
        port: int = 6697,
        tls: bool = True,
        reconnect_delay: float | None = 5.0,
    ):
        if not channel or not channel.strip("#").strip():
            raise ValueError("A Twitch channel name is required")
        self.channel = channel.lstrip("#").strip().lower()
        self.anonymous = not (nickname and oauth_token)
        self.nickname = anonymous_nickname() if self.anonymous else nickname.lower()
        self._password = ANONYMOUS_PASSWORD if self.anonymous else self._normalize_token(oauth_token)
        self.host = host
        self.port = port
        self.tls = tls
        self.reconnect_delay = reconnect_delay

        self.reader: asyncio.StreamReader | None = None
        self.writer: asyncio.StreamWriter | None = None
        self._closing = False

    @staticmethod
    def _normalize_token(token: str) -> str:
        token = token.strip()
        if not token.startswith("oauth:"):
            return f"oauth:{token}"
        return token

    async def run(self, on_event: ChatEventCallback, on_status: StatusCallback) -> None:
        """Read chat until close(), reconnecting after drops."""
        self._closing = False
        while not self._closing:
            on_status(ConnectionStatus.CONNECTING)
            try:
                await self._connect()
                on_status(ConnectionStatus.CONNECTED)
                await self._read_loop(on_event)
                on_status(ConnectionStatus.DISCONNECTED)
            except (OSError, asyncio.IncompleteReadError) as e:
                logger.error(f"Twitch IRC connection error: {e}")
                on_status(ConnectionStatus.ERROR)
            finally:
                await self._disconnect()

            if self._closing or self.reconnect_delay is None:
                break
            logger.info(f"Reconnecting to Twitch in {self.reconnect_delay:.0f}s")
            await asyncio.sleep(self.reconnect_delay)

        on_status(ConnectionStatus.DISCONNECTED)

    async def close(self) -> None:
        self._closing = True
        await self._disconnect()

    async def _connect(self) -> None:
        logger.info(f"Connecting to Twitch IRC ({self.host}:{self.port}) as {self.nickname}, channel #{self.channel}")
        self.reader, self.writer = await asyncio.open_connection(self.host, self.port, ssl=self.tls or None)
        await self._send_raw("CAP REQ :twitch.tv/tags twitch.tv/commands")
        await self._send_raw(f"PASS {self._password}")
        await self._send_raw(f"NICK {self.nickname}")
        await self._send_raw(f"JOIN #{self.channel}")
        logger.info(f"Joined Twitch channel #{self.channel}")

    async def _disconnect(self) -> None:
        writer = self.writer
        self.reader = None
        self.writer = None
        if writer is None:
            return
        try:
            writer.close()
            await writer.wait_closed()
        except OSError as e:
            logger.debug(f"Error during Twitch IRC close ignored: {e}")

    async def _read_loop(self, on_event: ChatEventCallback) -> None:
        while self.reader is not None:
            line = await self.reader.readline()
            if line == b"":
                logger.warning("Twitch IRC connection closed by remote")
                return

            decoded = line.decode("utf-8", errors="ignore").strip()
            if not decoded:
                continue

            if decoded.startswith("PING"):
                payload = decoded.split(" ", 1)[-1] if " " in decoded else ":tmi.twitch.tv"
                await self._send_raw(f"PONG {payload}")
                continue

            if " RECONNECT" in decoded:
                logger.info("Twitch requested reconnect")
                return

            event = parse_privmsg(decoded)
            if event is not None:
                logger.debug(f"[#{self.channel}] {event.username}: {event.message}")
                on_event(event)

    async def _send_raw(self, data: str) -> None:
        if not self.writer:
            raise RuntimeError("IRC writer is not initialized")
        self.writer.write((data + "\r\n").encode("utf-8"))
        await self.writer.drain()
