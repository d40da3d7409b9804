import logging
from typing import Optional

import config
from models import (
    Session,
    Command,
    Quit,
    ListUsers,
    Whisper,
    Rename,
    Help,
    UnknownCommand,
    MalformedCommand,
    PlainChat,
)
from registry import UserRegistry
from router import MessageRouter, send_line, send_lines

logger = logging.getLogger(__name__)

WHISPER_USAGE = "Usage: /whisper <username> <message>"
NICK_USAGE = "Usage: /nick <new_username>"

COMMAND_SUMMARY = ("Commands: /list (users), /whisper <user> <msg> (private), "
                   "/nick <name> (change name), /help (commands), /quit (exit)")

HELP_TEXT = "\n".join([
    "Available Commands:",
    "  /list - Show connected users",
    "  /whisper <user> <msg> - Send private message",
    "  /nick <name> - Change your username",
    "  /quit - Leave the chat",
    "  /help - Show this help message",
])


def parse_command(line: str, prefix: str = config.COMMAND_PREFIX) -> Optional[Command]:
    """
    Turn one input line into a Command.

    Returns None for blank lines. Command lines split into at most three
    tokens: the command word, one argument, and the rest of the line (which
    keeps its inner spaces). The command word is case-insensitive.
    """
    line = line.strip()
    if not line:
        return None

    if not line.startswith(prefix):
        return PlainChat(line)

    parts = line.split(maxsplit=2)
    word = parts[0].lower()
    args = parts[1:]
    cmd = word[len(prefix):]

    # quit / list / help take no arguments; extras are ignored.
    if cmd == "quit":
        return Quit()

    elif cmd == "list":
        return ListUsers()

    elif cmd == "help":
        return Help()

    elif cmd == "whisper":
        # /whisper <target> <message...>
        if len(args) < 2:
            return MalformedCommand(word, WHISPER_USAGE)
        return Whisper(args[0], args[1])

    elif cmd == "nick":
        # /nick <new_name>, names can't contain spaces here
        if len(args) != 1:
            return MalformedCommand(word, NICK_USAGE)
        return Rename(args[0])

    else:
        return UnknownCommand(parts[0])


class CommandDispatcher:
    """
    Runs the parsed command for one session.

    All command errors (name taken, unknown recipient, bad usage, unknown
    command) are answered to the calling session only.
    """

    def __init__(self, registry: UserRegistry, router: MessageRouter) -> None:
        self.registry = registry
        self.router = router

    def dispatch(self, session: Session, line: str) -> Optional[Command]:
        """Parse and execute one line. Returns the command, or None for a blank line."""
        command = parse_command(line)
        if command is None:
            return None

        if isinstance(command, PlainChat):
            self.router.broadcast(command.body, session)

        elif isinstance(command, Quit):
            send_line(session, f"Goodbye, {session.name} :(")
            session.closing = True

        elif isinstance(command, ListUsers):
            send_lines(session, self.router.user_listing())

        elif isinstance(command, Whisper):
            self.cmd_whisper(session, command)

        elif isinstance(command, Rename):
            self.cmd_nick(session, command)

        elif isinstance(command, Help):
            send_lines(session, HELP_TEXT)

        elif isinstance(command, MalformedCommand):
            send_line(session, command.usage)

        elif isinstance(command, UnknownCommand):
            send_line(session, f"Unknown command: {command.name}. Type /help for available commands.")

        return command

    # --- Individual commands ---

    def cmd_whisper(self, session: Session, command: Whisper) -> None:
        if not self.router.whisper(session.name, command.target, command.body):
            send_line(session, f"User '{command.target}' is not found.")

    def cmd_nick(self, session: Session, command: Rename) -> None:
        """
        /nick <new_name>

        The registry moves the entry and updates session.name in one step;
        only then is everybody told.
        """
        old_name = session.name
        new_name = command.new_name

        if new_name == old_name:
            send_line(session, f"You are already known as {old_name}.")
            return

        if not self.registry.rename(old_name, new_name):
            send_line(session, f"Username '{new_name}' is already taken.")
            return

        send_line(session, f"Your username has been changed to: {new_name}")
        logger.info("User '%s' changed name to '%s'", old_name, new_name)
        self.router.announce(f"{old_name} is now known as {new_name}")
