"""Locate, configure and supervise the Squid proxy child process."""

from __future__ import annotations

import os
import shutil
import subprocess
import sys
import time
from pathlib import Path
from textwrap import dedent
from typing import BinaryIO, List, Optional, Sequence

from ...logging_config import logger

SERVICE_NAME = "aiproxy"
DEFAULT_STARTUP_GRACE_SECONDS = 2.0

_KNOWN_LOCATIONS: Sequence[str] = (
    "/usr/sbin/squid",
    "/usr/local/sbin/squid",
    "/opt/homebrew/bin/squid",
    "/opt/homebrew/sbin/squid",
    "/usr/bin/squid",
    "/usr/local/bin/squid",
    "C:\\Program Files\\Squid\\bin\\squid.exe",
    "C:\\ProgramData\\chocolatey\\bin\\squid.exe",
)

_CONFIG_TEMPLATE = dedent(
    """
    # Managed by ai-proxy; rewritten on startup.
    http_port 127.0.0.1:{port}

    acl localnet src 127.0.0.1/32 ::1
    http_access allow localhost
    http_access allow localnet
    http_access deny all

    cache deny all
    coredump_dir {data_dir}
    pid_filename {data_dir}/squid.pid
    cache_log {data_dir}/squid_cache.log

    logformat aiproxy %ts.%03tu %6tr %>a %Ss/%03>Hs %<st %rm %ru %{{Host}}>h %un %Sh/%<a %mt
    access_log {log_path} aiproxy
    """
).lstrip()


class ProxyNotFoundError(RuntimeError):
    """Raised when no Squid binary can be located."""


class ProxyStartupError(RuntimeError):
    """Raised when Squid fails to start or exits immediately."""


def find_squid_binary(candidates: Sequence[str] = _KNOWN_LOCATIONS) -> Optional[Path]:
    for candidate in candidates:
        path = Path(candidate)
        if path.exists():
            return path
    found = shutil.which("squid")
    return Path(found) if found else None


def install_instructions(platform: Optional[str] = None) -> str:
    platform = platform or sys.platform
    lines = ["Squid is not installed. Please install it using:", ""]
    if platform.startswith("linux"):
        lines += [
            "  Ubuntu/Debian: sudo apt install squid",
            "  Fedora/RHEL:   sudo dnf install squid",
            "  Arch:          sudo pacman -S squid",
        ]
    elif platform == "darwin":
        lines.append("  macOS: brew install squid")
    elif platform.startswith("win"):
        lines += [
            "  Windows: choco install squid",
            "  (requires Chocolatey package manager)",
        ]
    else:
        lines.append("  Install squid with your platform's package manager.")
    return "\n".join(lines)


def render_squid_config(*, port: int, data_dir: Path, log_path: Path) -> str:
    return _CONFIG_TEMPLATE.format(port=port, data_dir=data_dir, log_path=log_path)


def write_squid_config(config_path: Path, *, port: int, log_path: Path) -> Path:
    """Write the managed config, touching the file only when its content changed."""
    content = render_squid_config(port=port, data_dir=config_path.parent, log_path=log_path)
    try:
        existing = config_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        existing = None
    if existing != content:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        config_path.write_text(content, encoding="utf-8")
        logger.debug("wrote squid configuration", extra={"path": str(config_path)})
    return config_path


class SquidProcess:
    """Context manager owning a foreground Squid process.

    The child is killed and reaped on every exit path of the ``with`` block.
    """

    def __init__(
        self,
        config_path: Path,
        *,
        port: int,
        binary: Optional[Path] = None,
        startup_grace_seconds: float = DEFAULT_STARTUP_GRACE_SECONDS,
    ) -> None:
        self._config_path = config_path
        self._port = port
        self._binary = binary
        self._startup_grace = startup_grace_seconds
        self._process: Optional[subprocess.Popen] = None
        self._stderr_path = config_path.parent / "squid_stderr.log"
        self._stderr_handle: Optional[BinaryIO] = None

    def _close_stderr(self) -> None:
        if self._stderr_handle is not None:
            self._stderr_handle.close()
            self._stderr_handle = None

    @property
    def running(self) -> bool:
        return self._process is not None and self._process.poll() is None

    def _command(self, binary: Path, *args: str) -> List[str]:
        return [str(binary), *args, "-f", str(self._config_path), "-n", SERVICE_NAME]

    def _initialize_cache(self, binary: Path) -> None:
        logger.info("initializing squid cache directory")
        result = subprocess.run(
            self._command(binary, "-z"),
            capture_output=True,
            text=True,
            check=False,
        )
        if result.returncode != 0 and "already exists" not in (result.stderr or ""):
            logger.warning(
                "squid cache initialization reported problems",
                extra={"stderr": (result.stderr or "").strip()},
            )

    def start(self) -> "SquidProcess":
        binary = self._binary or find_squid_binary()
        if binary is None:
            raise ProxyNotFoundError("Squid is not installed")

        self._initialize_cache(binary)

        logger.info("starting squid proxy on port %d", self._port)
        env = dict(os.environ, SQUID_CONF_DIR=str(self._config_path.parent))
        # squid -d writes diagnostics to stderr for its whole lifetime; a pipe would fill up
        self._stderr_handle = self._stderr_path.open("wb")
        try:
            self._process = subprocess.Popen(
                self._command(binary, "-N", "-d", "1"),
                stdout=subprocess.DEVNULL,
                stderr=self._stderr_handle,
                env=env,
            )
        except OSError as exc:
            self._close_stderr()
            raise ProxyStartupError(f"Failed to start Squid process: {exc}") from exc

        time.sleep(self._startup_grace)
        returncode = self._process.poll()
        if returncode is not None:
            self._process = None
            self._close_stderr()
            stderr = self._stderr_path.read_text(encoding="utf-8", errors="replace")
            raise ProxyStartupError(
                f"Squid process exited immediately with status {returncode}\nStderr: {stderr.strip()}"
            )

        logger.info("proxy listening on 127.0.0.1:%d", self._port)
        return self

    def stop(self) -> None:
        if self.running:
            self._process.kill()
        process = self._process
        self._process = None
        if process is not None:
            try:
                process.wait(timeout=5)
            except subprocess.TimeoutExpired:  # pragma: no cover - kill is not ignorable
                logger.warning("squid did not exit after kill", extra={"pid": process.pid})
            logger.info("squid proxy stopped")
        self._close_stderr()

    def __enter__(self) -> "SquidProcess":
        try:
            return self.start()
        except BaseException:
            self.stop()
            raise

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()


__all__ = [
    "ProxyNotFoundError",
    "ProxyStartupError",
    "SquidProcess",
    "find_squid_binary",
    "install_instructions",
    "render_squid_config",
    "write_squid_config",
]
