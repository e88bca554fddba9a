"""Bind a listening socket on the first free port of a range."""

from __future__ import annotations

import errno
import logging
import socket
import sys
from typing import Callable

from mcdcoupon.errors import NoPortAvailable

logger = logging.getLogger(__name__)

# EACCES shows up on Windows for ports held by excluded/reserved ranges.
_PORT_TAKEN_ERRNOS = frozenset({errno.EADDRINUSE, errno.EACCES, getattr(errno, "WSAEADDRINUSE", errno.EADDRINUSE)})

Binder = Callable[[str, int], socket.socket]


def bind_socket(host: str, port: int, backlog: int = 128) -> socket.socket:
    """Create a listening TCP socket on ``host:port``."""
    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    sock = socket.socket(family, socket.SOCK_STREAM)
    try:
        if sys.platform != "win32":
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind((host, port))
        sock.listen(backlog)
    except OSError:
        sock.close()
        raise
    sock.setblocking(False)
    return sock


def negotiate_port(
    start: int,
    end: int,
    *,
    host: str = "127.0.0.1",
    bind: Binder = bind_socket,
) -> tuple[socket.socket, int]:
    """Bind the first free port in ``[start, end]``.

    Ports that are in use are skipped; any other bind failure propagates.
    Raises :class:`NoPortAvailable` once *end* is passed.
    """
    if start > end:
        raise NoPortAvailable(start, end)
    for port in range(start, end + 1):
        try:
            sock = bind(host, port)
        except OSError as exc:
            if exc.errno in _PORT_TAKEN_ERRNOS:
                logger.debug("Port %d on %s is taken", port, host)
                continue
            raise
        if port != start:
            logger.info("Port %d was busy; bound %s:%d instead", start, host, port)
        return sock, port
    raise NoPortAvailable(start, end)


def advertised_url(host: str, port: int, path: str = "") -> str:
    """URL other processes on this machine should use to reach the listener."""
    if host in ("0.0.0.0", "", "::"):
        host = "127.0.0.1"
    elif ":" in host:
        host = f"[{host}]"
    return f"http://{host}:{port}{path}"
