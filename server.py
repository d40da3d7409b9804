import argparse
import logging
import socket
import threading
from typing import Optional

import config
from models import Session, SessionState, ReadResult
from registry import UserRegistry
from router import MessageRouter, send_line
from commands import CommandDispatcher, COMMAND_SUMMARY

logger = logging.getLogger(__name__)


class SessionHandler:
    """
    Owns one client connection from accept to close.

    Connecting -> Naming -> Active -> Closing. Every exit path (quit,
    end-of-stream, transport error, unexpected exception) ends in Closing,
    which unregisters the name and closes the socket exactly once.
    """

    def __init__(self, sock: socket.socket, addr, registry: UserRegistry,
                 router: MessageRouter, dispatcher: CommandDispatcher) -> None:
        self.sock = sock
        self.addr = addr
        self.registry = registry
        self.router = router
        self.dispatcher = dispatcher

        self.state = SessionState.CONNECTING
        self.session: Optional[Session] = None
        self.rfile = None
        self.wfile = None
        self._closed = False

    def run(self) -> None:
        logger.info("Incoming connection from %s", self.addr)
        try:
            self._connect()
            if self.state is SessionState.NAMING:
                self._naming()
            if self.state is SessionState.ACTIVE:
                self._active()
        except Exception:
            logger.exception("Unexpected error in client handler %s", self.addr)
        finally:
            self._teardown()

    # --- States ---

    def _transition(self, state: SessionState) -> None:
        logger.debug("%s: %s -> %s", self.addr, self.state.value, state.value)
        self.state = state

    def _connect(self) -> None:
        """Connecting: wrap the socket in line-oriented text streams."""
        self.rfile = self.sock.makefile("r", encoding=config.ENCODING, errors="replace", newline="\n")
        self.wfile = self.sock.makefile("w", encoding=config.ENCODING, newline="\n")
        self.session = Session(writer=self.wfile, addr=self.addr)
        self._transition(SessionState.NAMING)

    def _naming(self) -> None:
        """Naming: loop until a free, non-empty name is registered."""
        send_line(self.session, f"Welcome to {self.router.server_name}!")
        send_line(self.session, "Please enter your username:")

        while self.state is SessionState.NAMING:
            result = self._read()
            if not result.is_line:
                if result.error is None:
                    logger.info("%s disconnected before choosing a name", self.addr)
                self._transition(SessionState.CLOSING)
                return

            name = result.line.strip()
            if not name:
                send_line(self.session, "Username cannot be empty, please try again:")
                continue

            # /whisper and /nick take single-word names
            if len(name.split()) > 1 or name.startswith(config.COMMAND_PREFIX):
                send_line(self.session, f"Username cannot contain spaces or start with "
                                        f"'{config.COMMAND_PREFIX}', please try again:")
                continue

            if not self.registry.register(name, self.session):
                send_line(self.session, f"Username '{name}' is already taken. Please choose another:")
                continue

            self._transition(SessionState.ACTIVE)

        name = self.session.name
        logger.info("User '%s' joined the chat from %s", name, self.addr)
        send_line(self.session, f"Welcome, {name}! You're now connected to the chat.")
        send_line(self.session, COMMAND_SUMMARY)
        send_line(self.session, "Start chatting! Your messages will be broadcasted to everyone!")
        self.router.announce(f"{name} joined the chat!")

    def _active(self) -> None:
        """Active: dispatch lines until /quit, end-of-stream or a transport error."""
        while self.state is SessionState.ACTIVE:
            result = self._read()
            if not result.is_line:
                self._transition(SessionState.CLOSING)
                return

            self.dispatcher.dispatch(self.session, result.line)
            if self.session.closing:
                self._transition(SessionState.CLOSING)

    def _teardown(self) -> None:
        """Closing: idempotent cleanup, runs once whichever way we got here."""
        if self._closed:
            return
        self._closed = True
        self.state = SessionState.CLOSING

        name = self.session.name if self.session is not None else None
        if name is not None:
            self.registry.unregister(name)
            logger.info("User '%s' disconnected", name)
            self.router.announce(f"{name} left the chat.")

        for stream in (self.rfile, self.wfile):
            if stream is None:
                continue
            try:
                if stream is self.wfile:
                    # other sessions' threads may be writing to us right now
                    with self.session.write_lock:
                        stream.close()
                else:
                    stream.close()
            except (OSError, ValueError):
                pass
        try:
            self.sock.close()
        except OSError:
            pass

        logger.info("Connection from %s closed", self.addr)

    # --- I/O ---

    def _read(self) -> ReadResult:
        """Read one line as a tagged outcome instead of raising."""
        try:
            raw = self.rfile.readline()
        except (OSError, ValueError) as e:
            logger.warning("Transport failure on %s (%s): %s",
                           self.addr, self.session.name or "unnamed", e)
            return ReadResult.failure(e)
        if not raw:
            return ReadResult.end_of_stream()
        return ReadResult.of(raw.rstrip("\r\n"))


class ChatServer:
    """
    Accept loop. One registry / router / dispatcher per process, one daemon
    thread per connection.
    """

    def __init__(self, host: str = config.HOST, port: int = config.PORT) -> None:
        self.host = host
        self.port = port

        self.registry = UserRegistry()
        self.router = MessageRouter(self.registry)
        self.dispatcher = CommandDispatcher(self.registry, self.router)

        self.server_socket: Optional[socket.socket] = None
        self.running = False

    def handler_for(self, sock: socket.socket, addr) -> SessionHandler:
        return SessionHandler(sock, addr, self.registry, self.router, self.dispatcher)

    def bind(self) -> None:
        srv = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        srv.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        srv.bind((self.host, self.port))
        srv.listen()
        self.server_socket = srv
        # port 0 means "pick one"; remember what we actually got
        self.port = srv.getsockname()[1]
        logger.info("Starting %s on %s:%d", self.router.server_name, self.host, self.port)

    def serve_forever(self) -> None:
        if self.server_socket is None:
            self.bind()
        self.running = True
        logger.info("Listening for incoming connections...")

        while self.running:
            try:
                client_sock, addr = self.server_socket.accept()
            except OSError:
                # listener closed by shutdown()
                break
            t = threading.Thread(
                target=self.handler_for(client_sock, addr).run,
                name=f"session-{addr[0]}:{addr[1]}",
                daemon=True,
            )
            t.start()

    def shutdown(self) -> None:
        self.running = False
        if self.server_socket is not None:
            try:
                # wakes a thread blocked in accept()
                self.server_socket.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
            try:
                self.server_socket.close()
            except OSError:
                pass
        logger.info("Server stopped.")


def main() -> None:
    """
    Parse host / port, set up logging, and run the server until Ctrl+C.
    """
    parser = argparse.ArgumentParser(description="Line-based multi-user chat server")
    parser.add_argument("--host", default=config.HOST, help="bind address")
    parser.add_argument("--port", type=int, default=config.PORT, help="bind port")
    parser.add_argument("--log-level", default=logging.getLevelName(config.LOG_LEVEL),
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="logging level")
    args = parser.parse_args()

    logging.basicConfig(level=args.log_level, format=config.LOG_FORMAT, datefmt=config.LOG_DATEFMT)

    server = ChatServer(host=args.host, port=args.port)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        pass
    finally:
        server.shutdown()


if __name__ == "__main__":
    main()
