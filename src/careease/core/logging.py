"""
Logging infrastructure for the CareEase client.

Standard ``logging`` setup for the process, plus a per-chat event log that
records transcript activity (sends, failures, completed reveals) as JSONL.
"""

import json
import asyncio
import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Dict, Any, Optional

import aiofiles

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: str = "INFO") -> None:
    """Configure root logging for the CLI."""
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format=LOG_FORMAT,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _safe_dir_name(identifier: str) -> str:
    return re.sub(r"[^\w\-]", "", identifier) or "unknown"


class SessionLogger:
    """
    Per-chat event log.

    Writes one JSON object per line to:
    <log_dir>/careease-client/{chat_id}/events_YYYY-MM-DD.jsonl
    """

    def __init__(self, base_log_dir: Path):
        self.base_log_dir = Path(base_log_dir).expanduser()
        self.client_log_dir = self.base_log_dir / "careease-client"
        self._write_locks: Dict[str, asyncio.Lock] = {}

    def session_dir(self, chat_id: str) -> Path:
        """Get the log directory for a specific chat."""
        return self.client_log_dir / _safe_dir_name(chat_id)

    def _get_write_lock(self, chat_id: str) -> asyncio.Lock:
        if chat_id not in self._write_locks:
            self._write_locks[chat_id] = asyncio.Lock()
        return self._write_locks[chat_id]

    async def log_event(
        self,
        chat_id: str,
        event_type: str,
        details: Optional[Dict[str, Any]] = None,
        level: str = "INFO",
    ) -> None:
        """
        Append an event for a chat.

        Args:
            chat_id: Chat session identifier
            event_type: Type of event (e.g., "message_sent", "send_failed")
            details: Event details
            level: Log level (INFO, WARNING, ERROR)
        """
        try:
            session_dir = self.session_dir(chat_id)
            session_dir.mkdir(parents=True, exist_ok=True)

            today = datetime.now().strftime("%Y-%m-%d")
            log_file = session_dir / f"events_{today}.jsonl"

            log_entry = {
                "timestamp": datetime.now().isoformat(),
                "chat_id": chat_id,
                "level": level,
                "event_type": event_type,
                "details": details or {},
            }

            async with self._get_write_lock(chat_id):
                async with aiofiles.open(log_file, 'a', encoding='utf-8') as f:
                    await f.write(json.dumps(log_entry, ensure_ascii=False, default=str) + '\n')

        except Exception as e:
            # Fallback to standard logging if file write fails
            logging.error(f"Failed to write event log for chat {chat_id}: {e}")

    async def log_error(
        self,
        chat_id: str,
        error_type: str,
        error_message: str,
        error_details: Optional[Dict[str, Any]] = None,
    ) -> None:
        await self.log_event(
            chat_id,
            error_type,
            {"error_message": error_message, **(error_details or {})},
            level="ERROR",
        )


# Global logger instance
_session_logger: Optional[SessionLogger] = None


def get_session_logger(base_log_dir: Optional[Path] = None) -> SessionLogger:
    """Get or create the global session logger instance."""
    global _session_logger
    if _session_logger is None:
        if base_log_dir is None:
            base_log_dir = Path.home() / ".careease" / "logs"
        _session_logger = SessionLogger(base_log_dir)
    return _session_logger
