"""
Submission Rollout Triggers.

Routes:
    GET  /api/submissions/{submission_id}
        Submission plus availableActions
    POST /api/submissions/{submission_id}/{action}
        rollout  {"percentage": 25.5}
        pause    {"reason": "..."}          (reason optional)
        resume
        halt     {"severity": "critical", "reason": "..."}

Exports:
    SubmissionStatusTrigger
    SubmissionActionTrigger
"""

from typing import Any, Dict, List

import azure.functions as func

from .http_base import OrchestratorTrigger


class SubmissionStatusTrigger(OrchestratorTrigger):

    def __init__(self, orchestrator):
        super().__init__("submission_status", orchestrator)

    def get_allowed_methods(self) -> List[str]:
        return ["GET"]

    def process_request(self, req: func.HttpRequest) -> Dict[str, Any]:
        submission_id = self.extract_path_params(req, ["submission_id"])["submission_id"]
        rollout = self.orchestrator.rollout
        submission = rollout.get_submission(submission_id)
        return {
            "submission": self.dump(submission),
            "availableActions": rollout.available_actions(submission),
            "canIncreaseRollout": rollout.can_increase_rollout(submission),
        }


class SubmissionActionTrigger(OrchestratorTrigger):

    ACTIONS = ("rollout", "pause", "resume", "halt")

    def __init__(self, orchestrator):
        super().__init__("submission_action", orchestrator)

    def get_allowed_methods(self) -> List[str]:
        return ["POST"]

    def process_request(self, req: func.HttpRequest) -> Dict[str, Any]:
        params = self.extract_path_params(req, ["submission_id", "action"])
        submission_id, action = params["submission_id"], params["action"]
        rollout = self.orchestrator.rollout

        if action == "rollout":
            body = self.extract_json_body(req)
            self.validate_required_fields(body, ["percentage"])
            percentage = body["percentage"]
            if isinstance(percentage, bool) or not isinstance(percentage, (int, float)):
                raise ValueError("'percentage' must be a number")
            submission = rollout.update_rollout(submission_id, percentage)
        elif action == "pause":
            body = self.extract_json_body(req, required=False) or {}
            submission = rollout.pause(submission_id, body.get("reason"))
        elif action == "resume":
            submission = rollout.resume(submission_id)
        elif action == "halt":
            body = self.extract_json_body(req)
            self.validate_required_fields(body, ["severity", "reason"])
            submission = rollout.halt(submission_id, body["severity"], body["reason"])
        else:
            raise ValueError(f"Unknown action '{action}'. Allowed: {', '.join(self.ACTIONS)}")

        return {
            "submission": self.dump(submission),
            "availableActions": rollout.available_actions(submission),
        }


__all__ = ['SubmissionStatusTrigger', 'SubmissionActionTrigger']
