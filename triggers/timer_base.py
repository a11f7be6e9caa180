"""
Timer Handler Base Class.

Consistent pattern for timer trigger handlers:
- Past due detection and logging
- Standard execution flow with timing
- Result logging
- Exception handling with traceback

Usage:
    class MyTimerHandler(TimerHandlerBase):
        name = "MyHandler"

        def execute(self) -> Dict[str, Any]:
            return {"success": True, "processed_count": 3}

Exports:
    TimerHandlerBase: Abstract base class for timer handlers
"""

import traceback
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Dict, Any

import azure.functions as func

from util_logger import LoggerFactory, ComponentType


class TimerHandlerBase(ABC):
    """
    Abstract base class for timer trigger handlers.

    Subclasses must:
    - Set `name` class attribute
    - Implement `execute()` returning a dict with a 'success' key
    """

    name: str = "UnnamedTimer"

    def __init__(self):
        self._logger = None

    @property
    def logger(self):
        if self._logger is None:
            self._logger = LoggerFactory.create_logger(ComponentType.TRIGGER, self.name)
        return self._logger

    def handle(self, timer: func.TimerRequest) -> Dict[str, Any]:
        """
        Run execute() with logging; an exception becomes a failure result.

        Returns:
            Result dict from execute() or error dict on failure
        """
        trigger_time = datetime.now(timezone.utc)

        if timer.past_due:
            self.logger.warning(f"⏰ {self.name}: Timer is past due - running immediately")

        self.logger.info(f"⏰ {self.name}: Triggered at {trigger_time.isoformat()}")

        try:
            start_time = datetime.now(timezone.utc)
            result = self.execute()
            end_time = datetime.now(timezone.utc)

            if "duration_seconds" not in result:
                result["duration_seconds"] = round(
                    (end_time - start_time).total_seconds(), 2
                )

            self._log_result(result)
            return result

        except Exception as e:
            self.logger.error(f"❌ {self.name}: Unhandled exception: {e}")
            self.logger.error(traceback.format_exc())
            return {
                "success": False,
                "error": str(e),
            }

    @abstractmethod
    def execute(self) -> Dict[str, Any]:
        raise NotImplementedError("Subclass must implement execute()")

    def _log_result(self, result: Dict[str, Any]) -> None:
        duration = result.get("duration_seconds", 0)

        if not result.get("success", False):
            self.logger.error(f"❌ {self.name}: Failed - {result.get('errors') or result.get('error')}")
            return

        errors = result.get("errors") or []
        summary_str = self._format_summary(result)
        if errors:
            self.logger.warning(
                f"⚠️ {self.name}: Complete with {len(errors)} errors ({duration}s){summary_str}"
            )
        else:
            self.logger.info(f"✅ {self.name}: Complete ({duration}s){summary_str}")

    def _format_summary(self, summary: Dict[str, Any]) -> str:
        parts = []
        for key, value in summary.items():
            if key in ("success", "duration_seconds"):
                continue
            if isinstance(value, (int, float, str, bool)):
                parts.append(f"{key}={value}")

        if parts:
            return " | " + ", ".join(parts)
        return ""


__all__ = ['TimerHandlerBase']
