"""Local TCP port helpers."""

import contextlib
import socket

ALTERNATIVE_SCAN = 20


def is_port_available(port: int, host: str = "127.0.0.1") -> bool:
    """True if nothing is bound to ``port`` on ``host``."""
    with contextlib.closing(socket.socket(socket.AF_INET, socket.SOCK_STREAM)) as s:
        try:
            s.bind((host, port))
        except OSError:
            return False
    return True


def find_free_port() -> int:
    with contextlib.closing(socket.socket(socket.AF_INET, socket.SOCK_STREAM)) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


def suggest_port(port: int) -> int:
    """``port`` itself if free, else the next free port above it, else any free port."""
    for candidate in range(port, min(port + ALTERNATIVE_SCAN, 65535) + 1):
        if is_port_available(candidate):
            return candidate
    return find_free_port()
