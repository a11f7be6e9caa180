"""
Tick Scheduler Configuration.

Tick cadence, per-release lock timeout, batch parallelism and the shared
secret guarding the internal tick endpoint.

Exports:
    SchedulerConfig: Pydantic scheduler configuration model
"""

import os
import socket
from typing import Literal, Optional

from pydantic import BaseModel, Field

from .defaults import SchedulerDefaults


class SchedulerConfig(BaseModel):
    """Scheduler settings loaded from SCHEDULER_* and related variables."""

    scheduler_type: Literal["external", "timer"] = Field(
        default=SchedulerDefaults.SCHEDULER_TYPE,
        description="external = HTTP tick only, timer = in-app timer trigger also ticks"
    )

    interval_ms: int = Field(
        default=SchedulerDefaults.SCHEDULER_INTERVAL_MS,
        ge=SchedulerDefaults.SCHEDULER_INTERVAL_MS_MIN,
        description="Expected tick cadence in milliseconds"
    )

    lock_timeout_seconds: int = Field(
        default=SchedulerDefaults.LOCK_TIMEOUT_SECONDS,
        ge=30,
        le=3600,
        description="Seconds before a release lock is considered stale"
    )

    max_parallel_releases: int = Field(
        default=SchedulerDefaults.MAX_PARALLEL_RELEASES,
        ge=1,
        le=32,
        description="Releases processed concurrently within one tick (1 = sequential)"
    )

    cron_shared_secret: Optional[str] = Field(
        default=None,
        repr=False,
        description="Shared secret required on the tick endpoint"
    )

    cron_secret_header: str = Field(
        default=SchedulerDefaults.CRON_SECRET_HEADER,
        description="Header carrying the shared secret"
    )

    instance_id: str = Field(
        ...,
        description="Lock owner prefix identifying this process"
    )

    kickoff_reminder_lead_hours: int = Field(
        default=SchedulerDefaults.KICKOFF_REMINDER_LEAD_HOURS,
        ge=0,
        le=168,
        description="Hours before kickoff a release with a kickoff reminder starts"
    )

    def debug_dict(self) -> dict:
        return {
            "scheduler_type": self.scheduler_type,
            "interval_ms": self.interval_ms,
            "lock_timeout_seconds": self.lock_timeout_seconds,
            "max_parallel_releases": self.max_parallel_releases,
            "cron_shared_secret": "***MASKED***" if self.cron_shared_secret else None,
            "cron_secret_header": self.cron_secret_header,
            "instance_id": self.instance_id,
            "kickoff_reminder_lead_hours": self.kickoff_reminder_lead_hours,
        }

    @classmethod
    def from_environment(cls):
        """Load from environment variables."""
        return cls(
            scheduler_type=os.environ.get("SCHEDULER_TYPE", SchedulerDefaults.SCHEDULER_TYPE).lower(),
            interval_ms=int(os.environ.get(
                "SCHEDULER_INTERVAL_MS", str(SchedulerDefaults.SCHEDULER_INTERVAL_MS)
            )),
            lock_timeout_seconds=int(os.environ.get(
                "LOCK_TIMEOUT_SECONDS", str(SchedulerDefaults.LOCK_TIMEOUT_SECONDS)
            )),
            max_parallel_releases=int(os.environ.get(
                "TICK_MAX_PARALLEL_RELEASES", str(SchedulerDefaults.MAX_PARALLEL_RELEASES)
            )),
            cron_shared_secret=os.environ.get("CRON_SHARED_SECRET"),
            cron_secret_header=os.environ.get("CRON_SECRET_HEADER", SchedulerDefaults.CRON_SECRET_HEADER),
            # WEBSITE_INSTANCE_ID is set by the Azure Functions runtime
            instance_id=os.environ.get("INSTANCE_ID")
                or os.environ.get("WEBSITE_INSTANCE_ID", "")[:16]
                or socket.gethostname(),
            kickoff_reminder_lead_hours=int(os.environ.get(
                "KICKOFF_REMINDER_LEAD_HOURS", str(SchedulerDefaults.KICKOFF_REMINDER_LEAD_HOURS)
            )),
        )


__all__ = ['SchedulerConfig']
