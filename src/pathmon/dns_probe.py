from __future__ import annotations

import logging
import socket
import time
from typing import Optional


class DnsProbe:
    def lookup(self, hostname: str) -> Optional[float]:
        """Wall-clock ms spent resolving the hostname, None if resolution fails."""
        start = time.perf_counter()
        try:
            socket.getaddrinfo(hostname, None, socket.AF_UNSPEC, socket.SOCK_STREAM)
        except (socket.gaierror, OSError, UnicodeError) as exc:
            logging.debug("DNS lookup of %s failed: %s", hostname, exc)
            return None
        return (time.perf_counter() - start) * 1000
