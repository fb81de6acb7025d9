"""ICMP latency probe for linetest using the system ping command."""

import logging
import platform
import re
import shutil
import subprocess
from datetime import timedelta
from math import ceil

from linetest.probe import ProbeSetupError

logger = logging.getLogger(__name__)

# Windows prints "time<1ms" for very fast replies
_LESS_THAN_PATTERN = re.compile(r"time<(\d+)", re.IGNORECASE)
_LATENCY_PATTERN = re.compile(r"time\s*[=<]\s*(\d+(?:\.\d+)?)\s*ms", re.IGNORECASE)


def parse_ping_latency_ms(output: str) -> float | None:
    """Parse latency value from ping command output (pure function).

    Handles various ping output formats across platforms:
    - Linux/macOS: "time=12.3 ms"
    - Windows: "time=12ms" or "time<1ms"

    Windows "time<Nms" is interpreted as N/2 ms (midpoint estimate).

    Args:
        output: Raw ping command output

    Returns:
        Latency in milliseconds (float), or None if parsing failed

    Examples:
        >>> parse_ping_latency_ms("time=12.3 ms")
        12.3
        >>> parse_ping_latency_ms("time<1ms")
        0.5
        >>> parse_ping_latency_ms("Request timed out.")
    """
    if not output:
        return None

    match = _LESS_THAN_PATTERN.search(output)
    if match:
        threshold = float(match.group(1))
        return threshold / 2.0

    match = _LATENCY_PATTERN.search(output)
    if match:
        return float(match.group(1))

    return None


class PingProbe:
    """Probe that runs the OS ping command once per call.

    Cross-platform implementation supporting Windows, Linux, and macOS.

    Parsing relies on the English keyword "time" in ping output. On non-English
    Windows systems the output cannot be parsed and every probe is reported as
    a timeout.
    """

    def __init__(self, timeout_ms: int = 1000, executable: str = "ping"):
        """Initialize ping probe.

        Args:
            timeout_ms: Maximum time to wait for a reply in milliseconds.
            executable: Name or path of the ping binary.

        Raises:
            ValueError: timeout_ms is not positive.
            ProbeSetupError: no ping executable is available.
        """
        if timeout_ms <= 0:
            raise ValueError("timeout_ms must be positive")

        resolved = shutil.which(executable)
        if resolved is None:
            raise ProbeSetupError(f"ping command not found: {executable}")

        self.executable = resolved
        self.timeout_ms = timeout_ms
        self.timeout_seconds = timeout_ms / 1000.0
        self.system = platform.system()

        logger.debug(
            "PingProbe initialized: executable=%s, timeout_ms=%d, system=%s",
            self.executable,
            timeout_ms,
            self.system,
        )

    def probe(self, host: str) -> timedelta | None:
        """Ping the host once.

        Returns None if ping fails, times out, or output cannot be parsed.
        """
        if not host or not host.strip():
            return None

        cmd = self._build_ping_command(host)
        logger.debug("Executing ping: host=%s, timeout=%.1fs", host, self.timeout_seconds)

        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout_seconds + 0.5,
                shell=False,
            )
        except subprocess.TimeoutExpired:
            logger.debug("Ping timeout: host=%s, timeout=%.1fs", host, self.timeout_seconds)
            return None
        except OSError as e:
            logger.warning("Ping error: host=%s, error=%s", host, str(e), exc_info=True)
            return None

        if result.returncode != 0:
            logger.debug(
                "Ping failed (non-zero returncode): host=%s, returncode=%d",
                host,
                result.returncode,
            )
            return None

        latency = parse_ping_latency_ms(result.stdout)
        if latency is None:
            logger.debug(
                "Parse failed: host=%s, output_preview=%s",
                host,
                result.stdout[:100] if result.stdout else "(empty)",
            )
            return None

        logger.debug("Parsed latency: host=%s, latency=%.2fms", host, latency)
        return timedelta(milliseconds=latency)

    def _build_ping_command(self, host: str) -> list[str]:
        """Build platform-specific ping command for a single echo request."""
        if self.system == "Windows":
            return [self.executable, "-n", "1", "-w", str(self.timeout_ms), host]

        if self.system == "Linux":
            timeout_secs = max(1, ceil(self.timeout_seconds))
            return [self.executable, "-c", "1", "-W", str(timeout_secs), host]

        # macOS -W has different semantics, rely on the subprocess timeout
        return [self.executable, "-c", "1", host]
