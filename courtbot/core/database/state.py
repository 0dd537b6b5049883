"""
CourtBot - State Operations Mixin
=================================

Key/value bot state, used to persist runtime command toggles.
"""

import json
import time
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .manager import DatabaseManager


class StateMixin:
    """Mixin for bot state operations."""

    def get_bot_state(self: "DatabaseManager", key: str, default: Any = None) -> Any:
        """
        Get a bot state value.

        Args:
            key: State key to retrieve
            default: Default value if key not found

        Returns:
            Stored value or default
        """
        row = self.fetchone("SELECT value FROM bot_state WHERE key = ?", (key,))
        if row:
            try:
                return json.loads(row["value"])
            except json.JSONDecodeError:
                return row["value"]
        return default

    def set_bot_state(self: "DatabaseManager", key: str, value: Any) -> None:
        """
        Set a bot state value.

        Args:
            key: State key to set
            value: Value to store (will be JSON encoded)
        """
        value_str = json.dumps(value) if not isinstance(value, str) else value
        self.execute(
            "INSERT OR REPLACE INTO bot_state (key, value, updated_at) VALUES (?, ?, ?)",
            (key, value_str, time.time())
        )

    def delete_bot_state(self: "DatabaseManager", key: str) -> None:
        """Remove a bot state key if present."""
        self.execute("DELETE FROM bot_state WHERE key = ?", (key,))
