"""
Privileged Shell - Run command batches with root access
=======================================================
"""

import logging
import subprocess
from typing import List, Optional, Sequence

logger = logging.getLogger(__name__)


class CapabilityUnavailable(Exception):
    """No elevated execution path exists on the device."""
    pass


class PrivilegedShell:
    """Runs an ordered list of commands with elevated access."""

    def is_available(self) -> bool:
        raise NotImplementedError

    def run(self, commands: Sequence[str]):
        """
        Run commands in order.

        Individual command failures are not reported; the batch is best effort.

        Raises:
            CapabilityUnavailable: If elevated access is not available
        """
        raise NotImplementedError


class RootShell(PrivilegedShell):
    """
    Pipes command batches into `su` on the device.

    One `su` session runs the whole batch, so commands that depend on
    earlier ones (a sleep before a restart, a repeated density write)
    keep their order.
    """

    def __init__(self, shell_prefix: Optional[List[str]] = None, timeout: float = 60.0):
        """
        Initialize the root shell.

        Args:
            shell_prefix: Arguments that reach a device shell, e.g. ["adb", "shell"]
            timeout: Timeout for one batch in seconds
        """
        self.shell_prefix = list(shell_prefix or [])
        self.timeout = timeout

    def is_available(self) -> bool:
        try:
            result = subprocess.run(
                self.shell_prefix + ["su", "-c", "id"],
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except (FileNotFoundError, subprocess.TimeoutExpired) as e:
            logger.warning(f"Root check failed: {e}")
            return False

        available = "uid=0" in result.stdout
        if not available:
            logger.debug(f"Root check output: {result.stdout.strip()} {result.stderr.strip()}")
        return available

    def run(self, commands: Sequence[str]):
        batch = [c for c in commands if c]
        if not batch:
            return

        logger.info(f"Running {len(batch)} privileged command(s)")
        for command in batch:
            logger.debug(f"  su: {command}")

        script = "\n".join(batch) + "\nexit\n"
        try:
            result = subprocess.run(
                self.shell_prefix + ["su"],
                input=script,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            raise CapabilityUnavailable(f"Cannot start root shell: {e}") from e
        except subprocess.TimeoutExpired:
            # The window manager restart can take the shell down with it
            logger.warning(f"Privileged batch did not finish within {self.timeout:.0f}s")
            return

        if result.returncode != 0:
            logger.warning(f"Privileged batch exited with {result.returncode}: {result.stderr.strip()}")


class DebugShell(PrivilegedShell):
    """Logs commands instead of running them. Always available."""

    def __init__(self):
        self.history: List[List[str]] = []

    def is_available(self) -> bool:
        return True

    def run(self, commands: Sequence[str]):
        batch = [c for c in commands if c]
        if not batch:
            return
        self.history.append(batch)
        logger.info(f"[dry run] {len(batch)} privileged command(s):")
        for command in batch:
            logger.info(f"  {command}")
