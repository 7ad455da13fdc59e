from __future__ import annotations

import logging
import re
import subprocess
import sys
from typing import List, Optional

_LATENCY_RE = re.compile(r"time[=<]\s*([0-9.]+)\s*ms")


class Pinger:
    def __init__(self, timeout: float = 2.0) -> None:
        self.timeout = timeout

    def latency(self, host: str) -> Optional[float]:
        """Round-trip time of a single echo request in ms, or None on failure."""
        cmd = self._build_command(host)
        try:
            completed = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout + 1,
                check=False,
            )
        except subprocess.TimeoutExpired:
            logging.debug("ping %s timed out", host)
            return None
        except (FileNotFoundError, PermissionError) as exc:
            logging.debug("ping %s could not run: %s", host, exc)
            return None

        output = (completed.stdout or "") + (completed.stderr or "")
        if completed.returncode != 0:
            logging.debug("ping %s failed with code %s", host, completed.returncode)
            return None
        return parse_latency(output)

    def _build_command(self, host: str) -> List[str]:
        system = sys.platform
        cmd = ["ping"]
        if system.startswith("win"):
            cmd += ["-n", "1", "-w", str(int(self.timeout * 1000))]
        elif system == "darwin":
            # -t is the overall timeout on BSD ping; -W is per-reply in ms there.
            cmd += ["-c", "1", "-t", str(max(1, int(self.timeout)))]
        else:
            cmd += ["-c", "1", "-W", str(max(1, int(self.timeout)))]
        cmd.append(host)
        return cmd


def parse_latency(output: str) -> Optional[float]:
    match = _LATENCY_RE.search(output)
    if not match:
        return None
    try:
        return float(match.group(1))
    except ValueError:
        return None
