# config.py
# Central settings for the chat server and console client.
# The server and client entry points can override HOST / PORT from the command line.

import logging

# --- Network ---

# Interface the server listens on. '0.0.0.0' accepts connections on every interface.
HOST = '0.0.0.0'

# Well-known port shared by server and client.
PORT = 12345

# Host the console client connects to by default.
CLIENT_HOST = 'localhost'

# Text encoding of the newline-delimited wire protocol.
ENCODING = 'utf-8'

# --- Chat ---

# Sender name used for join / leave / rename notices.
SERVER_NAME = 'ChatServer'

# Lines starting with this character are commands, everything else is chat.
COMMAND_PREFIX = '/'

# Prefix format for routed messages, e.g. "[14:02:11] alice: hi".
TIMESTAMP_FORMAT = '%H:%M:%S'

# --- Logging ---

LOG_LEVEL = logging.INFO
LOG_FORMAT = '%(asctime)s [%(levelname)s] (%(threadName)s) %(message)s'
LOG_DATEFMT = '%H:%M:%S'
