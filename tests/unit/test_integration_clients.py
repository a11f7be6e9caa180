"""
Outbound HTTP collaborators over httpx.MockTransport.
"""

import json

import httpx
import pytest

from config import AppConfig, IntegrationConfig, PollerConfig, SchedulerConfig
from core.models import (
    HaltSeverity,
    Platform,
    ReleaseRecord,
    ReleaseTaskRecord,
    SubmissionRecord,
    TaskType,
)
from core.orchestrator_factory import (
    create_notification_client,
    create_poller_client,
    create_store_client,
    create_task_collaborator,
)
from exceptions import ConfigurationError, TaskFailureError, TransientIntegrationError
from services import (
    DispatchOutcome,
    HttpStoreClient,
    HttpTaskCollaborator,
    HttpWorkflowPollerClient,
    IntegrationHttpClient,
    LoggingTaskCollaborator,
    LoggingWorkflowPollerClient,
    NotificationEvent,
    WebhookNotificationClient,
)
from tests.factories.model_factories import make_release, make_submission, make_task


class Recorder:
    """MockTransport handler returning queued responses and recording requests."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        # fresh copy so a queued response can be served more than once
        return httpx.Response(response.status_code, headers=response.headers, content=response.content)

    def bodies(self):
        return [json.loads(r.content) if r.content else None for r in self.requests]


def _client(recorder, api_key="secret-key", base_url="https://integrations.test/api/"):
    return IntegrationHttpClient(
        base_url, timeout_seconds=5, api_key=api_key, transport=httpx.MockTransport(recorder)
    )


class TestIntegrationHttpClient:

    def test_success_returns_json(self):
        recorder = Recorder(httpx.Response(200, json={"ok": True}))

        body = _client(recorder).request("POST", "/tasks/fork-branch", json={"a": 1})

        request = recorder.requests[0]
        assert body == {"ok": True}
        assert str(request.url) == "https://integrations.test/api/tasks/fork-branch"
        assert request.headers["Authorization"] == "Bearer secret-key"

    def test_empty_body(self):
        recorder = Recorder(httpx.Response(204))
        assert _client(recorder).request("DELETE", "pollers/p1") == {}

    def test_no_auth_header_without_key(self):
        recorder = Recorder(httpx.Response(200, json={}))
        _client(recorder, api_key=None).request("GET", "status")
        assert "Authorization" not in recorder.requests[0].headers

    @pytest.mark.parametrize("status", [429, 500, 502, 503])
    def test_retryable_status_is_transient(self, status):
        recorder = Recorder(httpx.Response(status, text="busy"))

        with pytest.raises(TransientIntegrationError) as exc_info:
            _client(recorder).request("POST", "tasks/x")
        assert exc_info.value.status_code == status

    @pytest.mark.parametrize("error", [
        httpx.ConnectError("refused"),
        httpx.ReadTimeout("slow"),
    ])
    def test_transport_error_is_transient(self, error):
        with pytest.raises(TransientIntegrationError):
            _client(Recorder(error)).request("POST", "tasks/x")

    @pytest.mark.parametrize("status", [400, 401, 404, 409, 422])
    def test_client_error_is_task_failure(self, status):
        recorder = Recorder(httpx.Response(status, text="branch exists"))

        with pytest.raises(TaskFailureError) as exc_info:
            _client(recorder).request("POST", "tasks/x")
        assert exc_info.value.details == {"status_code": status, "body": "branch exists"}


class TestHttpTaskCollaborator:

    @pytest.fixture
    def release(self):
        return ReleaseRecord(**make_release())

    @pytest.fixture
    def task(self, release):
        return ReleaseTaskRecord(**make_task(release.release_id, TaskType.FORK_BRANCH))

    @pytest.mark.parametrize("status,outcome", [
        ("completed", DispatchOutcome.COMPLETED),
        ("pending", DispatchOutcome.PENDING),
        ("awaiting_callback", DispatchOutcome.AWAITING_CALLBACK),
        ("failed", DispatchOutcome.FAILED),
    ])
    def test_status_mapping(self, release, task, status, outcome):
        recorder = Recorder(httpx.Response(200, json={
            "status": status, "externalId": "ext-9", "data": {"branch": "release/v1"},
        }))

        result = HttpTaskCollaborator(_client(recorder)).dispatch(release, task, {"branch": "release/v1"})

        assert result.outcome == outcome
        assert result.external_id == "ext-9"
        assert result.data == {"branch": "release/v1"}
        sent = recorder.bodies()[0]
        assert recorder.requests[0].url.path == "/api/tasks/fork-branch"
        assert sent["taskId"] == task.task_id
        assert sent["releaseId"] == release.release_id
        assert sent["tenantId"] == release.tenant_id
        assert sent["payload"] == {"branch": "release/v1"}

    def test_unknown_status_fails_task(self, release, task):
        recorder = Recorder(httpx.Response(200, json={"status": "maybe"}))
        with pytest.raises(TaskFailureError):
            HttpTaskCollaborator(_client(recorder)).dispatch(release, task, {})


class TestHttpWorkflowPollerClient:

    def _pollers(self, recorder, **overrides):
        config = PollerConfig(
            base_url="https://pollers.test",
            callback_url="https://orchestrator.test/api/internal/ci-status",
            interval_minutes=overrides.pop("interval_minutes", 5),
        )
        return HttpWorkflowPollerClient(_client(recorder), config)

    def test_creates_both_pollers(self):
        recorder = Recorder(httpx.Response(201, json={}))

        self._pollers(recorder, interval_minutes=3).create_pollers("rel-1")

        bodies = recorder.bodies()
        assert [b["id"] for b in bodies] == ["pending-poller-rel-1", "running-poller-rel-1"]
        assert [b["payload"]["phase"] for b in bodies] == ["pending", "running"]
        assert all(b["schedule"] == "*/3 * * * *" for b in bodies)

    def test_existing_poller_tolerated(self):
        recorder = Recorder(httpx.Response(409, text="exists"), httpx.Response(201, json={}))
        self._pollers(recorder).create_pollers("rel-1")
        assert len(recorder.requests) == 2

    def test_missing_poller_tolerated_on_delete(self):
        recorder = Recorder(httpx.Response(404, text="gone"))

        self._pollers(recorder).delete_pollers("rel-1")

        assert [r.method for r in recorder.requests] == ["DELETE", "DELETE"]
        assert recorder.requests[1].url.path == "/api/pollers/running-poller-rel-1"

    def test_other_errors_propagate(self):
        recorder = Recorder(httpx.Response(400, text="bad schedule"))
        with pytest.raises(TaskFailureError):
            self._pollers(recorder).create_pollers("rel-1")

    def test_callback_url_required(self):
        with pytest.raises(ConfigurationError):
            HttpWorkflowPollerClient(_client(Recorder(httpx.Response(200))), PollerConfig(
                base_url="https://pollers.test",
            ))


class TestStoreAndNotifications:

    def test_halt_forwarded_to_store(self):
        recorder = Recorder(httpx.Response(200, json={}))
        submission = SubmissionRecord(**make_submission("rel-1", Platform.ANDROID))

        HttpStoreClient(_client(recorder)).halt_rollout(submission, HaltSeverity.CRITICAL, "crash")

        assert recorder.requests[0].url.path == f"/api/submissions/{submission.submission_id}/halt"
        body = recorder.bodies()[0]
        assert body["platform"] == "android"
        assert body["severity"] == "critical"
        assert body["reason"] == "crash"

    def test_store_rejection_propagates(self):
        recorder = Recorder(httpx.Response(422, text="rollout too low"))
        submission = SubmissionRecord(**make_submission("rel-1", Platform.ANDROID))
        with pytest.raises(TaskFailureError):
            HttpStoreClient(_client(recorder)).update_rollout(submission, 10.0)

    def test_notification_posted(self):
        recorder = Recorder(httpx.Response(200, json={}))

        WebhookNotificationClient(_client(recorder)).notify(
            NotificationEvent.STAGE_COMPLETED, "rel-1", {"stage": 1}
        )

        body = recorder.bodies()[0]
        assert body["event"] == "stage_completed"
        assert body["releaseId"] == "rel-1"
        assert body["payload"] == {"stage": 1}

    def test_notification_failure_swallowed(self):
        recorder = Recorder(httpx.Response(503, text="down"))
        WebhookNotificationClient(_client(recorder)).notify(
            NotificationEvent.TASK_FAILED, "rel-1", {}
        )
        assert len(recorder.requests) == 1


class TestCollaboratorSelection:

    def _config(self, integrations=None, pollers=None):
        return AppConfig(
            storage_backend="memory",
            scheduler=SchedulerConfig(instance_id="test-instance"),
            integrations=integrations or IntegrationConfig(),
            pollers=pollers or PollerConfig(),
        )

    def test_logging_implementations_by_default(self):
        config = self._config()
        assert isinstance(create_task_collaborator(config), LoggingTaskCollaborator)
        assert isinstance(create_poller_client(config), LoggingWorkflowPollerClient)

    def test_http_implementations_when_configured(self):
        config = self._config(
            integrations=IntegrationConfig(
                base_url="https://integrations.test",
                store_base_url="https://store.test",
                notification_webhook_url="https://hooks.test/releases",
            ),
            pollers=PollerConfig(base_url="https://pollers.test", callback_url="https://cb.test"),
        )
        assert isinstance(create_task_collaborator(config), HttpTaskCollaborator)
        assert isinstance(create_store_client(config), HttpStoreClient)
        assert isinstance(create_notification_client(config), WebhookNotificationClient)
        assert isinstance(create_poller_client(config), HttpWorkflowPollerClient)
