"""
CourtBot - Logger Module
========================

Custom tree-style logging with local timezone and daily rotation.

DESIGN:
    Every admission decision the bot makes (allow, deny, throttle, suppress)
    ends up here, so the output has to be easy to scan. Tree-style
    formatting groups the fields of one decision together.

    Key features:
    - Tree-style formatting for structured data visualization
    - Timezone-aware timestamps (BOT_TIMEZONE, default America/Sao_Paulo)
    - Daily log rotation in dated folders
    - 7-day log retention with automatic cleanup
    - Session tracking with unique run IDs
    - Webhook integration for error alerts
    - File output disabled under TESTING
"""

import os
import uuid
import aiohttp
import asyncio
from datetime import datetime
from pathlib import Path
from typing import List, Tuple, Optional

from zoneinfo import ZoneInfo


# =============================================================================
# Constants
# =============================================================================

LOGS_DIR = Path(os.getenv("LOG_DIR", "logs"))
"""Directory for all log files, organized by date."""

LOG_RETENTION_DAYS = 7
"""Number of days to retain log directories before cleanup."""

LOCAL_TZ = ZoneInfo(os.getenv("BOT_TIMEZONE", "America/Sao_Paulo"))
"""Timezone used for every timestamp the bot prints."""


# =============================================================================
# Tree Logger Class
# =============================================================================

class TreeLogger:
    """
    Custom logger with tree-style formatting and timezone support.

    DESIGN:
        Uses tree-style output (├─ └─) for visual hierarchy.
        Separate error log file for quick troubleshooting.
        Optional webhook notifications for errors with details.

    Attributes:
        run_id: Unique identifier for this bot session.
        log_file: Path to the main log file, None when file output is off.
        error_file: Path to the error-only log file.
    """

    # =========================================================================
    # Initialization
    # =========================================================================

    def __init__(self, to_file: bool = True) -> None:
        """
        Initialize logger with run ID and daily log file.

        Args:
            to_file: Whether to mirror output into the dated log directory.
        """
        self.run_id: str = str(uuid.uuid4())[:8]
        self._webhook_url: Optional[str] = None
        self.log_file: Optional[Path] = None
        self.error_file: Optional[Path] = None

        if not to_file:
            return

        today = datetime.now(LOCAL_TZ).strftime("%Y-%m-%d")
        self.log_dir = LOGS_DIR / today
        self.log_dir.mkdir(parents=True, exist_ok=True)

        self.log_file = self.log_dir / f"CourtBot-{today}.log"
        self.error_file = self.log_dir / f"CourtBot-Errors-{today}.log"

        self._cleanup_old_logs()
        self._write_session_header()

    def set_webhook(self, url: Optional[str]) -> None:
        """
        Set webhook URL for error notifications.

        Args:
            url: Webhook URL for error alerts.
        """
        self._webhook_url = url

    # =========================================================================
    # Log Cleanup
    # =========================================================================

    def _cleanup_old_logs(self) -> None:
        """
        Remove log directories older than retention period.

        Only directories named YYYY-MM-DD are considered.
        """
        if not LOGS_DIR.exists():
            return

        now = datetime.now()
        deleted = 0

        for item in LOGS_DIR.iterdir():
            if not item.is_dir():
                continue
            try:
                dir_date = datetime.strptime(item.name, "%Y-%m-%d")
            except ValueError:
                continue  # Not a dated directory
            if (now - dir_date).days > LOG_RETENTION_DAYS:
                for f in item.iterdir():
                    f.unlink()
                item.rmdir()
                deleted += 1

        if deleted > 0:
            print(f"[LOG CLEANUP] Removed {deleted} old log directories")

    # =========================================================================
    # Session Header
    # =========================================================================

    def _write_session_header(self) -> None:
        """Write session start marker to log file."""
        header = f"""
============================================================
NEW SESSION - RUN ID: {self.run_id}
[{datetime.now(LOCAL_TZ).strftime("%H:%M:%S %Z")}]
============================================================
"""
        self._append(self.log_file, header)

    # =========================================================================
    # Core Logging
    # =========================================================================

    def _get_timestamp(self) -> str:
        """Get current timestamp like "[14:30:45 -03]"."""
        return datetime.now(LOCAL_TZ).strftime("[%H:%M:%S %Z]")

    @staticmethod
    def _append(path: Optional[Path], text: str) -> None:
        if path is None:
            return
        with open(path, "a", encoding="utf-8") as f:
            f.write(text)

    def _write(
        self,
        message: str,
        emoji: str = "",
        include_timestamp: bool = True,
        is_error: bool = False,
    ) -> None:
        """
        Write log message to console and file.

        Args:
            message: Log message content.
            emoji: Optional emoji prefix.
            include_timestamp: Whether to prepend timestamp.
            is_error: Whether to also write to error log.
        """
        if include_timestamp:
            timestamp = self._get_timestamp()
            full_message = f"{timestamp} {emoji} {message}" if emoji else f"{timestamp} {message}"
        else:
            full_message = f"{emoji} {message}" if emoji else message

        print(full_message)

        self._append(self.log_file, f"{full_message}\n")
        if is_error:
            self._append(self.error_file, f"{full_message}\n")

    def _write_items(self, items: List[Tuple[str, str]], is_error: bool = False) -> None:
        for i, (key, value) in enumerate(items):
            prefix = "└─" if i == len(items) - 1 else "├─"
            self._write(f"  {prefix} {key}: {value}", include_timestamp=False, is_error=is_error)

    # =========================================================================
    # Tree Formatting
    # =========================================================================

    def tree(
        self,
        title: str,
        items: List[Tuple[str, str]],
        emoji: str = "📦",
    ) -> None:
        """
        Log structured data in tree format.

        Args:
            title: Main heading for the tree.
            items: List of (key, value) tuples to display.
            emoji: Emoji prefix for the title.

        Example output:
            [14:30:45 -03] 🚫 Command Denied
              ├─ Actor: 5511999990000
              ├─ Command: silenciar
              └─ Reason: not_group_admin
        """
        self._append(self.log_file, "\n")
        self._write(title, emoji=emoji)
        self._write_items(items)
        self._append(self.log_file, "\n")

    # =========================================================================
    # Log Levels
    # =========================================================================

    def debug(self, msg: str) -> None:
        """Log debug message (only if DEBUG env var set)."""
        if os.getenv("DEBUG"):
            self._write(msg, "🔍")

    def info(self, msg: str) -> None:
        """Log informational message."""
        self._write(msg, "ℹ️")

    def success(self, msg: str) -> None:
        """Log success message."""
        self._write(msg, "✅")

    def warning(
        self,
        msg: str,
        details: Optional[List[Tuple[str, str]]] = None,
    ) -> None:
        """
        Log warning message with optional structured details.

        Args:
            msg: Warning message content.
            details: Optional list of (key, value) detail tuples.
        """
        self._write(msg, "⚠️")
        if details:
            self._write_items(details)

    def error(
        self,
        msg: str,
        details: Optional[List[Tuple[str, str]]] = None,
    ) -> None:
        """
        Log error message with optional structured details.

        DESIGN:
            Errors with details use tree format for visibility and are
            forwarded to the webhook when one is configured and an event
            loop is running.

        Args:
            msg: Error message or title.
            details: Optional list of (key, value) detail tuples.
        """
        if not details:
            self._write(msg, "❌", is_error=True)
            return

        self._write("", is_error=True)
        self._write(msg, "❌", is_error=True)
        self._write_items(details, is_error=True)
        self._write("", include_timestamp=False, is_error=True)

        if self._webhook_url:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                return  # No loop, console and file only
            loop.create_task(self._send_webhook_error(msg, details))

    def critical(self, msg: str) -> None:
        """Log critical error message."""
        self._write(msg, "🚨", is_error=True)

    # =========================================================================
    # Webhook Integration
    # =========================================================================

    async def _send_webhook_error(
        self,
        title: str,
        details: List[Tuple[str, str]],
    ) -> None:
        """
        Send error notification to the configured webhook.

        Webhook failures are printed, never logged, so a broken webhook
        cannot recurse back into error().

        Args:
            title: Error title for the embed.
            details: List of (key, value) detail tuples.
        """
        if not self._webhook_url:
            return

        description = "\n".join(f"**{k}:** {v}" for k, v in details)
        payload = {
            "embeds": [{
                "title": f"❌ {title}",
                "description": description,
                "color": 0xFF0000,
                "timestamp": datetime.now(LOCAL_TZ).isoformat(),
                "footer": {"text": f"Run ID: {self.run_id}"},
            }]
        }

        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(
                    self._webhook_url,
                    json=payload,
                    timeout=aiohttp.ClientTimeout(total=10),
                ) as resp:
                    if resp.status not in (200, 204):
                        print(f"Webhook error: {resp.status}")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            print(f"Failed to send webhook: {e}")


# =============================================================================
# Global Instance
# =============================================================================

logger = TreeLogger(to_file=not os.getenv("TESTING"))
"""Global logger instance shared by every module."""


# =============================================================================
# Module Export
# =============================================================================

__all__ = [
    "logger",
    "TreeLogger",
    "LOCAL_TZ",
]
