from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Union
import threading

import config


class SessionState(Enum):
    CONNECTING = "connecting"
    NAMING = "naming"
    ACTIVE = "active"
    CLOSING = "closing"


@dataclass(eq=False)
class Session:
    """
    Per-connection state, kept only in memory.

    `name` stays None until the registration handshake succeeds. The registry
    holds a reference to this object while the name is registered, but the
    SessionHandler owns it.

    eq=False: sessions compare (and hash) by identity, two clients that
    happen to share a name at different times are different sessions.
    """
    writer: Any  # text-mode file wrapper (makefile("w")) or anything with write/flush
    name: Optional[str] = None
    addr: Any = None
    closing: bool = False
    write_lock: threading.Lock = field(default_factory=threading.Lock, repr=False)


class MessageKind(Enum):
    BROADCAST = "broadcast"
    WHISPER = "whisper"
    SYSTEM = "system"
    ERROR = "error"


@dataclass
class Message:
    """
    One routed message. Built, rendered to a single line, then dropped.
    """
    kind: MessageKind
    body: str
    sender: Optional[str] = None
    recipient: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)

    def render(self) -> str:
        stamp = self.timestamp.strftime(config.TIMESTAMP_FORMAT)
        if self.kind is MessageKind.BROADCAST:
            text = f"{self.sender}: {self.body}"
        elif self.kind is MessageKind.WHISPER:
            text = f"{self.sender} whispered: {self.body}"
        else:
            text = self.body
        # a message is exactly one line on the wire
        return f"[{stamp}] {text}".replace("\r", " ").replace("\n", " ")


# --- Commands parsed out of a single input line ---

@dataclass(frozen=True)
class Quit:
    pass


@dataclass(frozen=True)
class ListUsers:
    pass


@dataclass(frozen=True)
class Whisper:
    target: str
    body: str


@dataclass(frozen=True)
class Rename:
    new_name: str


@dataclass(frozen=True)
class Help:
    pass


@dataclass(frozen=True)
class UnknownCommand:
    name: str


@dataclass(frozen=True)
class MalformedCommand:
    """Recognised command word, wrong number of arguments."""
    name: str
    usage: str


@dataclass(frozen=True)
class PlainChat:
    body: str


Command = Union[Quit, ListUsers, Whisper, Rename, Help,
                UnknownCommand, MalformedCommand, PlainChat]


# --- Outcome of reading one line from a connection ---

@dataclass(frozen=True)
class ReadResult:
    """
    Tagged outcome of "read next line": exactly one of
    line / end-of-stream / failure.
    """
    line: Optional[str] = None
    eof: bool = False
    error: Optional[BaseException] = None

    @classmethod
    def of(cls, line: str) -> "ReadResult":
        return cls(line=line)

    @classmethod
    def end_of_stream(cls) -> "ReadResult":
        return cls(eof=True)

    @classmethod
    def failure(cls, error: BaseException) -> "ReadResult":
        return cls(error=error)

    @property
    def is_line(self) -> bool:
        return self.line is not None
