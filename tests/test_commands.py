"""
Tests for command parsing and dispatch, no sockets involved.
"""

import unittest

from commands import CommandDispatcher, parse_command
from models import (
    Quit, ListUsers, Whisper, Rename, Help,
    UnknownCommand, MalformedCommand, PlainChat,
)
from registry import UserRegistry
from router import MessageRouter
from tests.fakes import make_session


class TestParseCommand(unittest.TestCase):

    def test_blank_lines_are_ignored(self):
        self.assertIsNone(parse_command(""))
        self.assertIsNone(parse_command("   \t "))

    def test_plain_chat_is_trimmed(self):
        self.assertEqual(parse_command("  hello there  "), PlainChat("hello there"))

    def test_zero_argument_commands(self):
        self.assertEqual(parse_command("/quit"), Quit())
        self.assertEqual(parse_command("/list"), ListUsers())
        self.assertEqual(parse_command("/help"), Help())

    def test_command_word_is_case_insensitive(self):
        self.assertEqual(parse_command("/QUIT"), Quit())
        self.assertEqual(parse_command("/Whisper bob hi"), Whisper("bob", "hi"))

    def test_extra_arguments_ignored_for_zero_argument_commands(self):
        self.assertEqual(parse_command("/list everyone"), ListUsers())

    def test_whisper_keeps_rest_of_line(self):
        self.assertEqual(parse_command("/whisper carol meet me  at noon"),
                         Whisper("carol", "meet me  at noon"))

    def test_whisper_needs_target_and_message(self):
        for line in ("/whisper", "/whisper carol"):
            command = parse_command(line)
            self.assertIsInstance(command, MalformedCommand)
            self.assertIn("Usage: /whisper", command.usage)

    def test_nick(self):
        self.assertEqual(parse_command("/nick dave"), Rename("dave"))

    def test_nick_needs_exactly_one_name(self):
        for line in ("/nick", "/nick two words"):
            command = parse_command(line)
            self.assertIsInstance(command, MalformedCommand)
            self.assertIn("Usage: /nick", command.usage)

    def test_unknown_command(self):
        self.assertEqual(parse_command("/dance now"), UnknownCommand("/dance"))
        self.assertEqual(parse_command("/"), UnknownCommand("/"))


class TestDispatcher(unittest.TestCase):

    def setUp(self):
        self.registry = UserRegistry()
        self.router = MessageRouter(self.registry)
        self.dispatcher = CommandDispatcher(self.registry, self.router)
        self.alice = self.join("alice")
        self.bob = self.join("bob")
        self.carol = self.join("carol")

    def join(self, name):
        session = make_session()
        self.assertTrue(self.registry.register(name, session))
        return session

    def test_blank_line_has_no_effect(self):
        self.assertIsNone(self.dispatcher.dispatch(self.alice, "   "))
        for session in (self.alice, self.bob, self.carol):
            self.assertEqual(session.writer.lines, [])

    def test_plain_chat_is_broadcast(self):
        self.dispatcher.dispatch(self.alice, "hi")

        self.assertEqual(len(self.bob.writer.matching("alice: hi")), 1)
        self.assertEqual(len(self.carol.writer.matching("alice: hi")), 1)
        self.assertEqual(self.alice.writer.lines, [])

    def test_whisper(self):
        self.dispatcher.dispatch(self.bob, "/whisper carol secret")

        self.assertEqual(len(self.carol.writer.lines), 1)
        self.assertIn("whispered: secret", self.carol.writer.lines[0])
        self.assertEqual(len(self.bob.writer.lines), 1)
        self.assertIn("Whispered to carol", self.bob.writer.lines[0])
        self.assertEqual(self.alice.writer.lines, [])

    def test_whisper_unknown_user(self):
        self.dispatcher.dispatch(self.bob, "/whisper nobody secret")

        self.assertEqual(self.bob.writer.lines, ["User 'nobody' is not found."])
        self.assertEqual(self.alice.writer.lines, [])
        self.assertEqual(self.carol.writer.lines, [])

    def test_whisper_usage(self):
        self.dispatcher.dispatch(self.bob, "/whisper carol")
        self.assertEqual(self.bob.writer.lines, ["Usage: /whisper <username> <message>"])

    def test_nick_to_taken_name(self):
        self.join("dave")

        self.dispatcher.dispatch(self.alice, "/nick dave")

        self.assertEqual(self.alice.writer.lines, ["Username 'dave' is already taken."])
        self.assertIs(self.registry.lookup("alice"), self.alice)
        self.assertEqual(self.alice.name, "alice")
        self.assertEqual(self.bob.writer.lines, [])

    def test_nick_success(self):
        self.dispatcher.dispatch(self.alice, "/nick dave")

        self.assertEqual(self.alice.name, "dave")
        self.assertIs(self.registry.lookup("dave"), self.alice)
        self.assertIsNone(self.registry.lookup("alice"))
        self.assertEqual(len(self.alice.writer.matching("Your username has been changed to: dave")), 1)
        self.assertEqual(len(self.bob.writer.matching("alice is now known as dave")), 1)

    def test_nick_to_own_name(self):
        self.dispatcher.dispatch(self.alice, "/nick alice")

        self.assertEqual(self.alice.writer.lines, ["You are already known as alice."])
        self.assertEqual(self.bob.writer.lines, [])

    def test_chat_after_nick_uses_new_name(self):
        self.dispatcher.dispatch(self.alice, "/nick dave")
        self.dispatcher.dispatch(self.alice, "hello")

        self.assertEqual(len(self.bob.writer.matching("dave: hello")), 1)
        self.assertEqual(self.alice.writer.matching("dave: hello"), [])

    def test_quit(self):
        command = self.dispatcher.dispatch(self.alice, "/quit")

        self.assertEqual(command, Quit())
        self.assertTrue(self.alice.closing)
        self.assertEqual(self.alice.writer.lines, ["Goodbye, alice :("])
        self.assertEqual(self.bob.writer.lines, [])

    def test_list_goes_to_caller_only(self):
        self.dispatcher.dispatch(self.alice, "/list")

        self.assertEqual(self.alice.writer.lines,
                         ["Connected Users (3):", "  ~ alice", "  ~ bob", "  ~ carol"])
        self.assertEqual(self.bob.writer.lines, [])

    def test_help(self):
        self.dispatcher.dispatch(self.alice, "/help")

        lines = self.alice.writer.lines
        self.assertEqual(lines[0], "Available Commands:")
        for word in ("/list", "/whisper", "/nick", "/quit", "/help"):
            self.assertTrue(any(word in line for line in lines[1:]), word)

    def test_unknown_command(self):
        self.dispatcher.dispatch(self.alice, "/dance")

        self.assertEqual(self.alice.writer.lines,
                         ["Unknown command: /dance. Type /help for available commands."])
        self.assertEqual(self.bob.writer.lines, [])


if __name__ == "__main__":
    unittest.main()
