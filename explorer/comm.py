# comm.py
# Text link to the Raspberry Pi that relays to the motor/sensor controller
# (AR), the tablet (AN) and the recognition service (IR).
#
# Messages are newline-terminated lines: "AR,F", "AN,<payload>", ...

import logging
import socket
import time

from explorer.constants import RPI_HOST, RPI_PORT, NUM_OF_RETRIES, NO_READING

logger = logging.getLogger(__name__)

AN = "AN"   # to the tablet
AR = "AR"   # to the robot controller
IR = "IR"   # to the image recognition service

BUFFER_SIZE = 1024


def format_msg(msg, msg_type=None):
    if msg is None:
        return f"{msg_type}\n"
    if msg_type in (AN, AR, IR):
        return f"{msg_type},{msg}\n"
    return f"{msg}\n"


def parse_sensor_reply(reply, expected=5):
    """
    "2,-1,3,-1,-1" -> [2, -1, 3, -1, -1]. Negative values mean nothing in
    range. Returns None for an empty or malformed reply.
    """
    if not reply:
        return None
    parts = [p.strip() for p in reply.strip().split(",") if p.strip()]
    if len(parts) != expected:
        return None
    try:
        values = [int(float(p)) for p in parts]
    except ValueError:
        return None
    return [v if v >= 0 else NO_READING for v in values]


class RPiTransport:
    def __init__(self, host=RPI_HOST, port=RPI_PORT, retries=NUM_OF_RETRIES, sock=None):
        self.host = host
        self.port = port
        self.retries = retries
        self.client_socket = sock
        self.connected = sock is not None
        self._buffer = b""

    def connect(self):
        attempt = 0
        while not self.connected and attempt < self.retries:
            try:
                self.client_socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
                self.client_socket.connect((self.host, self.port))
                self.connected = True
                logger.info("[PC Client] Connected to RPi at %s:%s.", self.host, self.port)
            except OSError as e:
                attempt += 1
                logger.error("[PC Client] Failed to connect - %s. Retry no.%d in 1 second...", e, attempt)
                time.sleep(1)
        return self.connected

    def disconnect(self):
        try:
            if self.client_socket is not None:
                self.client_socket.close()
                logger.info("[PC Client] Disconnected from RPi.")
        except OSError as e:
            logger.error("[PC Client] Failed to disconnect from RPi: %s", e)
        finally:
            self.connected = False
            self._buffer = b""

    def reconnect(self):
        logger.info("[PC Client] Reconnecting...")
        self.disconnect()
        return self.connect()

    def send_msg(self, msg, msg_type=None):
        if not self.connected:
            logger.error("[PC Client] Not connected; dropped %r.", msg)
            return False
        line = format_msg(msg, msg_type)
        try:
            self.client_socket.sendall(line.encode("utf-8"))
            logger.debug("[PC Client] Write to RPi: %s", line.rstrip())
            return True
        except OSError as e:
            logger.error("[PC Client] Failed to write to RPi - %s", e)
            self.connected = False
            return False

    def recv_msg(self):
        """Next line from the RPi without its terminator, or "" if the link failed."""
        if not self.connected:
            return ""
        try:
            while b"\n" not in self._buffer:
                chunk = self.client_socket.recv(BUFFER_SIZE)
                if not chunk:
                    logger.error("[PC Client] RPi disconnected.")
                    self.connected = False
                    return ""
                self._buffer += chunk
        except OSError as e:
            logger.error("[PC Client] Failed to read from RPi - %s", e)
            self.connected = False
            return ""
        line, _, self._buffer = self._buffer.partition(b"\n")
        msg = line.decode("utf-8", errors="replace").strip()
        logger.debug("[PC Client] Received: %s", msg)
        return msg
