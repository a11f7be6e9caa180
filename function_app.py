"""
Azure Functions entry point for the Release Orchestrator.

Drives mobile app releases through four stages (kickoff, regression,
pre-release, distribution) on a periodic tick, and exposes the operator
and rollout actions.

Architecture:
    External cron (or timer) -> TickScheduler -> per release, under lock:
        ReleaseStateMachine.tick() -> TaskExecutor -> collaborators
                                            |
                                   ManualBuildGate (uploads)

    Operators -> release/submission routes -> ReleaseStateMachine /
                                              RolloutController

Exports:
    app: Azure Function App instance
    orchestrator: Wired orchestrator (built once per process)

Endpoints:
    POST /api/internal/cron/releases - Batch tick (shared secret header)

    Releases:
        POST /api/releases - Create a release and its PENDING cron job
        GET  /api/releases/{release_id} - Release, cron job and tasks
        POST /api/releases/{release_id}/{action} - start | pause | resume |
             trigger-next-stage | archive | regression-slots
        POST /api/releases/{release_id}/tasks/{task_id}/{action} - retry | callback

    Submissions:
        GET  /api/submissions/{submission_id} - Submission and available actions
        POST /api/submissions/{submission_id}/{action} - rollout | pause | resume | halt

    System:
        GET  /api/health - Health and configuration summary
        POST /api/admin/schema/deploy?confirm=yes - Create orchestration tables

Timer (SCHEDULER_TYPE=timer):
    release_scheduler_timer - Same tick as the cron endpoint

Environment Variables:
    See config/ (STORAGE_BACKEND, POSTGRES_*, CRON_SHARED_SECRET,
    INTEGRATION_*, WORKFLOW_POLLER_*, ...)
"""

# ========================================================================
# IMPORTS
# ========================================================================

import logging

import azure.functions as func

# Quiet HTTP client logging
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)

from config import get_config
from core.orchestrator_factory import create_orchestrator
from triggers.cron_releases import CronReleasesTrigger
from triggers.health import HealthCheckTrigger
from triggers.release_actions import (
    ReleaseActionTrigger,
    ReleaseCreateTrigger,
    ReleaseStatusTrigger,
    TaskActionTrigger,
)
from triggers.schema_deploy import SchemaDeployTrigger
from triggers.submissions import SubmissionActionTrigger, SubmissionStatusTrigger
from triggers.timers import create_scheduler_blueprint
from util_logger import LoggerFactory, ComponentType

logger = LoggerFactory.create_logger(ComponentType.TRIGGER, "function_app")

# ========================================================================
# ORCHESTRATOR - built once, passed to every trigger
# ========================================================================

config = get_config()
orchestrator = create_orchestrator(config)

cron_releases_trigger = CronReleasesTrigger(orchestrator)
release_create_trigger = ReleaseCreateTrigger(orchestrator)
release_status_trigger = ReleaseStatusTrigger(orchestrator)
release_action_trigger = ReleaseActionTrigger(orchestrator)
task_action_trigger = TaskActionTrigger(orchestrator)
submission_status_trigger = SubmissionStatusTrigger(orchestrator)
submission_action_trigger = SubmissionActionTrigger(orchestrator)
health_check_trigger = HealthCheckTrigger(orchestrator)
schema_deploy_trigger = SchemaDeployTrigger(orchestrator)

app = func.FunctionApp(http_auth_level=func.AuthLevel.ANONYMOUS)

if config.scheduler.scheduler_type == "timer":
    app.register_functions(create_scheduler_blueprint(orchestrator))
    logger.info(f"⏰ Timer scheduler registered (every {config.scheduler.interval_ms}ms)")
else:
    logger.info("⏰ External scheduler mode: ticks arrive on /api/internal/cron/releases")


# ========================================================================
# TICK
# ========================================================================

@app.route(route="internal/cron/releases", methods=["POST"])
def cron_releases(req: func.HttpRequest) -> func.HttpResponse:
    """Run one tick across all eligible releases."""
    return cron_releases_trigger.handle_request(req)


# ========================================================================
# RELEASES
# ========================================================================

@app.route(route="releases", methods=["POST"])
def release_create(req: func.HttpRequest) -> func.HttpResponse:
    """Create a release and its PENDING cron job."""
    return release_create_trigger.handle_request(req)


@app.route(route="releases/{release_id}", methods=["GET"])
def release_status(req: func.HttpRequest) -> func.HttpResponse:
    return release_status_trigger.handle_request(req)


@app.route(route="releases/{release_id}/{action}", methods=["POST"])
def release_action(req: func.HttpRequest) -> func.HttpResponse:
    """start | pause | resume | trigger-next-stage | archive | regression-slots"""
    return release_action_trigger.handle_request(req)


@app.route(route="releases/{release_id}/tasks/{task_id}/{action}", methods=["POST"])
def task_action(req: func.HttpRequest) -> func.HttpResponse:
    """retry | callback"""
    return task_action_trigger.handle_request(req)


# ========================================================================
# SUBMISSIONS
# ========================================================================

@app.route(route="submissions/{submission_id}", methods=["GET"])
def submission_status(req: func.HttpRequest) -> func.HttpResponse:
    return submission_status_trigger.handle_request(req)


@app.route(route="submissions/{submission_id}/{action}", methods=["POST"])
def submission_action(req: func.HttpRequest) -> func.HttpResponse:
    """rollout | pause | resume | halt"""
    return submission_action_trigger.handle_request(req)


# ========================================================================
# SYSTEM
# ========================================================================

@app.route(route="health", methods=["GET"])
def health(req: func.HttpRequest) -> func.HttpResponse:
    return health_check_trigger.handle_request(req)


@app.route(route="admin/schema/deploy", methods=["POST"])
def schema_deploy(req: func.HttpRequest) -> func.HttpResponse:
    return schema_deploy_trigger.handle_request(req)


logger.info("✅ Release orchestrator function app loaded")
