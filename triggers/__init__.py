"""
Triggers Package.

Azure Functions HTTP and timer entry points. function_app.py builds the
orchestrator once and hands it to each trigger.

HTTP Endpoints:
    /api/internal/cron/releases: Batch tick (shared secret)
    /api/releases/{release_id}[/...]: Operator actions and status
    /api/submissions/{submission_id}[/...]: Rollout actions
    /api/health: Liveness and configuration summary
    /api/admin/schema/deploy: Create orchestration tables

Timer:
    release_scheduler_timer (SCHEDULER_TYPE=timer)
"""

# Only import base classes to avoid initialization at import time
# Trigger classes should be imported directly from their modules
from .http_base import BaseHttpTrigger, OrchestratorTrigger

__all__ = [
    'BaseHttpTrigger',
    'OrchestratorTrigger',
]
