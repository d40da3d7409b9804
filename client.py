import argparse
import socket
import sys
import threading

import config

sock = None
rfile = None
wfile = None
receiver = None
running = True


def receiver_loop():
    """Background thread, prints anything the server sends"""
    global rfile, running
    try:
        while running:
            line = rfile.readline()
            if not line:
                print("** Disconnected from server **")
                running = False
                break
            print(line.rstrip())
    except (OSError, ValueError) as e:
        if running:
            print(f"** Receiver error: {e}")
        running = False


def connect(host: str, port: int) -> bool:
    """Connect to the chat server and start the receiver thread."""
    global sock, rfile, wfile, receiver, running
    print(f"Connecting to chat server at {host}:{port}...")
    try:
        s = socket.create_connection((host, port))
    except OSError as e:
        print(f"Failed to connect to server: {e}")
        print(f"Make sure the server is running on {host}:{port}")
        return False

    sock = s
    rfile = sock.makefile("r", encoding=config.ENCODING, errors="replace", newline="\n")
    wfile = sock.makefile("w", encoding=config.ENCODING, newline="\n")
    running = True

    receiver = threading.Thread(target=receiver_loop, daemon=True)
    receiver.start()

    print("Successfully connected to server!")
    return True


def send_line(line: str) -> bool:
    """Send a raw line to the server."""
    global wfile
    try:
        wfile.write(line + "\n")
        wfile.flush()
        return True
    except (OSError, ValueError) as e:
        print(f"Send failed: {e}")
        return False


def disconnect():
    global running, sock
    running = False
    if sock is not None:
        try:
            sock.close()
        except OSError:
            pass
        sock = None
    print("Disconnected from chat server.")


def main():
    global running

    parser = argparse.ArgumentParser(description="Console client for the chat server")
    parser.add_argument("--host", default=config.CLIENT_HOST, help="server address")
    parser.add_argument("--port", type=int, default=config.PORT, help="server port")
    args = parser.parse_args()

    if not connect(args.host, args.port):
        sys.exit(1)

    quit_command = f"{config.COMMAND_PREFIX}quit"
    try:
        while running:
            try:
                line = input()
            except EOFError:
                break

            if not line.strip():
                continue

            if not send_line(line):
                break

            if line.strip().lower() == quit_command:
                # let the farewell arrive before closing
                receiver.join(timeout=1.0)
                break
    except KeyboardInterrupt:
        pass
    finally:
        disconnect()


if __name__ == "__main__":
    main()
