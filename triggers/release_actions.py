"""
Release Operator Triggers.

Routes:
    POST /api/releases
        Create a release and its PENDING cron job
    GET  /api/releases/{release_id}
        Cron job state, release record and tasks
    POST /api/releases/{release_id}/{action}
        start | pause | resume | trigger-next-stage | archive | regression-slots
    POST /api/releases/{release_id}/tasks/{task_id}/{action}
        retry | callback

create body:
    {"tenantId": "t1", "version": "1.4.0", "releaseType": "minor",
     "platforms": ["android", "ios"], "kickoffAt": "...", "targetReleaseAt": "...",
     "upcomingRegressions": [{"offsetFromKickoff": 1, "time": "09:00"}],
     "cronConfig": {...}, "autoTransitionToStage2": true}

regression-slots body:
    {"offsetFromKickoff": 3, "time": "09:00", "config": {...}}

callback body (CI build result):
    {"succeeded": true, "detail": {...}}

Exports:
    ReleaseCreateTrigger
    ReleaseStatusTrigger
    ReleaseActionTrigger
    TaskActionTrigger
"""

import uuid
from typing import Any, Dict, List

import azure.functions as func

from core.models import CronConfig, RegressionSlot, ReleaseRecord
from exceptions import ResourceNotFoundError
from .http_base import OrchestratorTrigger


def _parse_slot(body: Dict[str, Any]) -> RegressionSlot:
    if not isinstance(body, dict):
        raise ValueError("Regression slot must be a JSON object")
    offset = body.get("offsetFromKickoff", body.get("offset_from_kickoff"))
    if offset is None or body.get("time") is None:
        raise ValueError("Missing required fields: offsetFromKickoff, time")

    data = {"offset_from_kickoff": offset, "time": body["time"]}
    if body.get("config") is not None:
        data["config"] = body["config"]
    return RegressionSlot.model_validate(data)


class ReleaseCreateTrigger(OrchestratorTrigger):
    """Register a release and its PENDING cron job."""

    _RELEASE_FIELDS = {
        "releaseId": "release_id",
        "tenantId": "tenant_id",
        "version": "version",
        "releaseType": "release_type",
        "platforms": "platforms",
        "branch": "branch",
        "kickoffAt": "kickoff_at",
        "targetReleaseAt": "target_release_at",
        "buildConfig": "build_config",
        "projectManagementEnabled": "project_management_enabled",
        "testManagementEnabled": "test_management_enabled",
    }

    def __init__(self, orchestrator):
        super().__init__("release_create", orchestrator)

    def get_allowed_methods(self) -> List[str]:
        return ["POST"]

    def process_request(self, req: func.HttpRequest) -> Dict[str, Any]:
        body = self.extract_json_body(req)
        self.validate_required_fields(
            body, ["tenantId", "version", "platforms", "kickoffAt", "targetReleaseAt"]
        )

        data = {
            field: body[key] for key, field in self._RELEASE_FIELDS.items()
            if body.get(key) is not None
        }
        data.setdefault("release_id", f"rel-{uuid.uuid4().hex[:12]}")
        if isinstance(data.get("release_type"), str):
            data["release_type"] = data["release_type"].lower()
        release = ReleaseRecord.model_validate(data)

        slots = body.get("upcomingRegressions") or []
        if not isinstance(slots, list):
            raise ValueError("'upcomingRegressions' must be a list")
        cron_config = body.get("cronConfig")

        release, cron_job = self.orchestrator.state_machine.create_release(
            release,
            upcoming_regressions=[_parse_slot(slot) for slot in slots],
            cron_config=CronConfig.model_validate(cron_config) if cron_config is not None else None,
            auto_transition_to_stage2=bool(body.get("autoTransitionToStage2", False)),
            auto_transition_to_stage3=bool(body.get("autoTransitionToStage3", False)),
        )

        return {
            "releaseId": release.release_id,
            "version": release.version,
            "cronStatus": cron_job.cron_status.value,
            "release": self.dump(release),
            "cronJob": self.dump(cron_job),
        }


class ReleaseStatusTrigger(OrchestratorTrigger):
    """Read-only view operators use to see why a release is (not) moving."""

    def __init__(self, orchestrator):
        super().__init__("release_status", orchestrator)

    def get_allowed_methods(self) -> List[str]:
        return ["GET"]

    def process_request(self, req: func.HttpRequest) -> Dict[str, Any]:
        release_id = self.extract_path_params(req, ["release_id"])["release_id"]
        repos = self.orchestrator.repos

        release = repos.releases.get_release(release_id)
        cron_job = repos.cron_jobs.get_cron_job(release_id)
        if release is None or cron_job is None:
            raise ResourceNotFoundError(f"Release {release_id} not found")

        return {
            "releaseId": release_id,
            "cronStatus": cron_job.cron_status.value,
            "pauseType": cron_job.pause_type.value,
            "currentStage": cron_job.current_stage(),
            "release": self.dump(release),
            "cronJob": self.dump(cron_job),
            "tasks": [self.dump(t) for t in repos.tasks.list_tasks(release_id)],
        }


class ReleaseActionTrigger(OrchestratorTrigger):

    ACTIONS = ("start", "pause", "resume", "trigger-next-stage", "archive", "regression-slots")

    def __init__(self, orchestrator):
        super().__init__("release_action", orchestrator)

    def get_allowed_methods(self) -> List[str]:
        return ["POST"]

    def process_request(self, req: func.HttpRequest) -> Dict[str, Any]:
        params = self.extract_path_params(req, ["release_id", "action"])
        release_id, action = params["release_id"], params["action"]
        machine = self.orchestrator.state_machine

        if action == "start":
            cron_job = machine.start(release_id)
        elif action == "pause":
            cron_job = machine.pause(release_id)
        elif action == "resume":
            cron_job = machine.resume(release_id)
        elif action == "trigger-next-stage":
            cron_job = machine.trigger_next_stage(release_id)
        elif action == "archive":
            cron_job = machine.archive(release_id)
        elif action == "regression-slots":
            slot = _parse_slot(self.extract_json_body(req))
            cron_job = machine.add_regression_slot(release_id, slot)
        else:
            raise ValueError(f"Unknown action '{action}'. Allowed: {', '.join(self.ACTIONS)}")

        return {
            "releaseId": release_id,
            "action": action,
            "cronStatus": cron_job.cron_status.value,
            "pauseType": cron_job.pause_type.value,
            "cronJob": self.dump(cron_job),
        }


class TaskActionTrigger(OrchestratorTrigger):

    def __init__(self, orchestrator):
        super().__init__("task_action", orchestrator)

    def get_allowed_methods(self) -> List[str]:
        return ["POST"]

    def process_request(self, req: func.HttpRequest) -> Dict[str, Any]:
        params = self.extract_path_params(req, ["release_id", "task_id", "action"])
        release_id, task_id, action = params["release_id"], params["task_id"], params["action"]
        machine = self.orchestrator.state_machine

        if action == "retry":
            task = machine.retry_task(release_id, task_id)
        elif action == "callback":
            body = self.extract_json_body(req)
            succeeded = body.get("succeeded")
            if not isinstance(succeeded, bool):
                raise ValueError("'succeeded' must be true or false")
            detail = body.get("detail")
            if detail is not None and not isinstance(detail, dict):
                raise ValueError("'detail' must be an object")
            task = machine.handle_build_callback(release_id, task_id, succeeded, detail)
        else:
            raise ValueError(f"Unknown task action '{action}'. Allowed: retry, callback")

        return {
            "releaseId": release_id,
            "taskId": task_id,
            "action": action,
            "taskStatus": task.task_status.value,
            "task": self.dump(task),
        }


__all__ = ['ReleaseCreateTrigger', 'ReleaseStatusTrigger', 'ReleaseActionTrigger', 'TaskActionTrigger']
