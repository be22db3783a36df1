# savemanager/services/rcon.py
"""
Minecraft RCON Protocol Client

Handles:
- server.properties parsing (RCON settings, level-name)
- RCON connection, authentication and command execution
- Minecraft colour code stripping
"""

import re
import socket
import struct
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from savemanager.core.config import MINECRAFT_SERVER_PATH


def strip_minecraft_colors(text: str) -> str:
    """Strip Minecraft color/formatting codes (§X) from text"""
    return re.sub(r'§.', '', text)


def load_server_properties(server_path: Optional[Path] = None) -> dict:
    """Parse server.properties into a dict (empty when the file is missing)"""
    props_file = (server_path or MINECRAFT_SERVER_PATH) / "server.properties"
    props = {}
    if props_file.exists():
        with open(props_file, "r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if line and not line.startswith("#") and "=" in line:
                    key, value = line.split("=", 1)
                    props[key.strip()] = value.strip()
    return props


@dataclass
class RCONConfig:
    """RCON connection settings"""
    enabled: bool = False
    host: str = "127.0.0.1"
    port: int = 25575
    password: str = ""


def get_rcon_config(server_path: Optional[Path] = None) -> RCONConfig:
    props = load_server_properties(server_path)
    return RCONConfig(
        enabled=props.get("enable-rcon", "false").lower() == "true",
        host="127.0.0.1",
        port=int(props.get("rcon.port", "25575")),
        password=props.get("rcon.password", ""),
    )


class RCONClient:
    """Blocking RCON client; use from a worker thread"""

    SERVERDATA_AUTH = 3
    SERVERDATA_EXECCOMMAND = 2
    MAX_PACKET_SIZE = 4096

    def __init__(self, host: str, port: int, password: str, timeout: float = 5.0):
        self.host = host
        self.port = port
        self.password = password
        self.timeout = timeout
        self.socket: Optional[socket.socket] = None
        self.request_id = 0

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.disconnect()
        return False

    def _pack_packet(self, packet_type: int, payload: str) -> bytes:
        self.request_id += 1
        payload_bytes = payload.encode("utf-8") + b"\x00\x00"
        length = 4 + 4 + len(payload_bytes)
        return struct.pack("<iii", length, self.request_id, packet_type) + payload_bytes

    def _recv_exact(self, size: int) -> bytes:
        data = b""
        while len(data) < size:
            chunk = self.socket.recv(size - len(data))
            if not chunk:
                raise ConnectionError("Connection lost")
            data += chunk
        return data

    def _read_packet(self) -> tuple:
        length = struct.unpack("<i", self._recv_exact(4))[0]
        if length < 10 or length > self.MAX_PACKET_SIZE:
            raise ConnectionError(f"RCON packet size out of bounds: {length}")

        data = self._recv_exact(length)
        request_id, packet_type = struct.unpack("<ii", data[0:8])
        payload = data[8:-2].decode("utf-8", errors="replace")
        return request_id, packet_type, payload

    def connect(self):
        """Connect and authenticate; raises ConnectionError on failure"""
        try:
            self.socket = socket.create_connection((self.host, self.port), timeout=self.timeout)
            self.socket.sendall(self._pack_packet(self.SERVERDATA_AUTH, self.password))
            request_id, _, _ = self._read_packet()
        except OSError as e:
            self.disconnect()
            raise ConnectionError(f"Failed to connect to RCON at {self.host}:{self.port}: {e}") from e

        # Auth failure is signalled with request id -1
        if request_id == -1:
            self.disconnect()
            raise ConnectionError("RCON authentication failed")

    def command(self, command: str) -> str:
        if not self.socket:
            raise ConnectionError("Not connected")
        try:
            self.socket.sendall(self._pack_packet(self.SERVERDATA_EXECCOMMAND, command))
            _, _, payload = self._read_packet()
        except OSError as e:
            raise ConnectionError(f"Command failed: {e}") from e
        return payload

    def disconnect(self):
        if self.socket:
            try:
                self.socket.close()
            except OSError:
                pass
            self.socket = None
