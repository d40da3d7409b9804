import logging
from typing import Union

import config
from models import Session, Message, MessageKind
from registry import UserRegistry

logger = logging.getLogger(__name__)


# --- Small helpers ---

def send_line(session: Session, line: str) -> bool:
    """
    Write one line to a session's connection.

    Writes to the same session are serialized by its write lock, so two
    threads broadcasting at once can't interleave half-lines. A failed write
    is logged and reported as False, never raised: the recipient's own read
    loop notices the dead connection and tears it down.
    """
    with session.write_lock:
        try:
            session.writer.write(line + "\n")
            session.writer.flush()
            return True
        except (OSError, ValueError) as e:
            logger.warning("Failed to send to %s: %s", session.name or session.addr, e)
            return False


def send_lines(session: Session, text: str) -> None:
    """Send a multi-line reply as one wire line per text line."""
    for line in text.splitlines():
        send_line(session, line)


class MessageRouter:
    """
    Formats and delivers broadcasts, whispers and system notices.

    Holds no state of its own besides the registry it routes through.
    """

    def __init__(self, registry: UserRegistry, server_name: str = config.SERVER_NAME) -> None:
        self.registry = registry
        self.server_name = server_name

    def broadcast(self, body: str, sender: Union[Session, str, None] = None) -> int:
        """
        Deliver `body` to every registered session except the sender.

        `sender` is the sending Session, a registered name (resolved to its
        session right now), or None for a server notice that goes to
        everybody. Exclusion compares sessions, not names, so a rename racing
        with this call can't make the sender receive its own message.

        Returns the number of successful deliveries.
        """
        if isinstance(sender, str):
            origin = self.registry.lookup(sender)
            sender_name = sender
        else:
            origin = sender
            sender_name = sender.name if sender is not None else None

        if origin is None and sender_name is None:
            msg = Message(kind=MessageKind.SYSTEM, body=body, sender=self.server_name)
        else:
            msg = Message(kind=MessageKind.BROADCAST, body=body, sender=sender_name)
        line = msg.render()

        # Snapshot recipients so no write happens under the registry lock.
        recipients = [sess for _, sess in self.registry.sessions() if sess is not origin]

        delivered = 0
        for sess in recipients:
            if send_line(sess, line):
                delivered += 1

        if msg.kind is MessageKind.SYSTEM:
            logger.info("NOTICE: %s", body)
        else:
            logger.info("BROADCAST from %s: %s", sender_name, body)
        return delivered

    def announce(self, body: str) -> int:
        """Server-origin notice (join / leave / rename), same delivery path as chat."""
        return self.broadcast(body, None)

    def whisper(self, from_name: str, to_name: str, body: str) -> bool:
        """
        Private message to `to_name` plus a confirmation echo to `from_name`.

        Returns False (and delivers nothing) if the recipient isn't registered;
        telling the sender is the caller's job. A sender that vanished in the
        meantime just doesn't get its echo.
        """
        target = self.registry.lookup(to_name)
        if target is None:
            return False

        msg = Message(kind=MessageKind.WHISPER, body=body, sender=from_name, recipient=to_name)
        send_line(target, msg.render())

        origin = self.registry.lookup(from_name)
        if origin is not None:
            echo = Message(kind=MessageKind.SYSTEM, body=f"Whispered to {to_name}: {body}",
                           sender=from_name, recipient=to_name, timestamp=msg.timestamp)
            send_line(origin, echo.render())

        logger.info("PRIVATE from %s to %s: %s", from_name, to_name, body)
        return True

    def user_listing(self) -> str:
        """Human-readable listing of the current registry snapshot."""
        names = self.registry.snapshot()
        if not names:
            return "No users currently connected"

        lines = [f"Connected Users ({len(names)}):"]
        lines.extend(f"  ~ {name}" for name in names)
        return "\n".join(lines)
