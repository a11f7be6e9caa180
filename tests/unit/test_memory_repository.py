"""
In-memory repositories: transactions, compare-and-set, ordering.
"""

import pytest

from core.models import (
    CronJobRecord,
    CronStatus,
    PauseType,
    Platform,
    ReleaseStage,
    ReleaseTaskRecord,
    ReleaseUploadRecord,
    SubmissionRecord,
    StageStatus,
    SubmissionStatus,
    TaskStatus,
    UploadStage,
)
from exceptions import ContractViolationError, DatabaseError
from tests.factories.model_factories import make_submission, make_task, make_upload


class TestTransactions:

    def test_rollback_restores_every_table(self, repos, seed_release):
        release = seed_release()
        cron_job = repos.cron_jobs.get_cron_job(release.release_id)

        with pytest.raises(RuntimeError):
            with repos.transaction():
                repos.cron_jobs.save_cron_job(cron_job.model_copy(update={
                    "cron_status": CronStatus.RUNNING,
                }))
                repos.tasks.create_tasks([ReleaseTaskRecord(**make_task(release.release_id))])
                raise RuntimeError("tick failed")

        assert repos.cron_jobs.get_cron_job(release.release_id).cron_status == CronStatus.PENDING
        assert repos.tasks.list_tasks(release.release_id) == []

    def test_nested_transaction_joins_outer(self, repos, seed_release):
        release = seed_release()

        with pytest.raises(RuntimeError):
            with repos.transaction():
                with repos.transaction():
                    repos.tasks.create_tasks([ReleaseTaskRecord(**make_task(release.release_id))])
                raise RuntimeError("outer failed")

        assert repos.tasks.list_tasks(release.release_id) == []


class TestReleases:

    def test_latest_version_per_tenant(self, repos, seed_release):
        seed_release(tenant_id="tenant-a", version="1.9.0")
        seed_release(tenant_id="tenant-a", version="v1.10.2-rc1")
        seed_release(tenant_id="tenant-b", version="4.0.0")

        assert repos.releases.get_latest_version("tenant-a") == "v1.10.2-rc1"
        assert repos.releases.get_latest_version("tenant-c") is None

class TestCronJobs:

    def test_stale_row_version_rejected(self, repos, seed_release):
        release = seed_release()
        first = repos.cron_jobs.get_cron_job(release.release_id)
        second = repos.cron_jobs.get_cron_job(release.release_id)

        repos.cron_jobs.save_cron_job(first)
        with pytest.raises(DatabaseError):
            repos.cron_jobs.save_cron_job(second)

    def test_duplicate_create_ignored(self, repos, seed_release):
        release = seed_release()
        assert not repos.cron_jobs.create_cron_job(CronJobRecord(release_id=release.release_id))

    def test_schedulable_excludes_paused_and_completed(self, repos, seed_release):
        pending = seed_release()
        running = seed_release(cron_overrides={"cron_status": CronStatus.RUNNING})
        seed_release(cron_overrides={"cron_status": CronStatus.COMPLETED})

        ids = {job.release_id for job in repos.cron_jobs.list_schedulable_cron_jobs()}
        assert ids == {pending.release_id, running.release_id}


class TestCronJobWriteRules:

    @pytest.fixture
    def stored(self, repos, seed_release):
        release = seed_release()
        return repos.cron_jobs.get_cron_job(release.release_id)

    @pytest.mark.parametrize("update", [
        {"stage2_status": StageStatus.IN_PROGRESS},
        {"stage1_status": StageStatus.COMPLETED},
        {"cron_status": CronStatus.RUNNING, "pause_type": PauseType.USER_REQUESTED},
        {"cron_status": CronStatus.COMPLETED},
        {"cron_status": CronStatus.PAUSED},
    ])
    def test_illegal_write_rejected(self, repos, stored, update):
        with pytest.raises(ContractViolationError):
            repos.cron_jobs.save_cron_job(stored.model_copy(update=update))

        assert repos.cron_jobs.get_cron_job(stored.release_id).row_version == stored.row_version

    def test_stage_cannot_move_backwards(self, repos, stored):
        started = repos.cron_jobs.save_cron_job(stored.model_copy(update={
            "cron_status": CronStatus.RUNNING,
            "stage1_status": StageStatus.IN_PROGRESS,
        }))

        with pytest.raises(ContractViolationError):
            repos.cron_jobs.save_cron_job(started.model_copy(update={
                "stage1_status": StageStatus.PENDING,
            }))
        with pytest.raises(ContractViolationError):
            started.with_stage_status(ReleaseStage.REGRESSION, StageStatus.COMPLETED)

    def test_completed_cron_job_is_final(self, repos, stored):
        repos.releases.mark_archived(stored.release_id)
        completed = repos.cron_jobs.save_cron_job(stored.model_copy(update={
            "cron_status": CronStatus.COMPLETED,
        }))

        with pytest.raises(ContractViolationError):
            repos.cron_jobs.save_cron_job(completed.model_copy(update={
                "cron_status": CronStatus.RUNNING,
            }))


class TestTasks:

    def test_transition_compare_and_set(self, repos):
        task = ReleaseTaskRecord(**make_task())
        repos.tasks.create_tasks([task])

        assert repos.tasks.transition_task(task.task_id, TaskStatus.PENDING, TaskStatus.IN_PROGRESS)
        assert not repos.tasks.transition_task(task.task_id, TaskStatus.PENDING, TaskStatus.IN_PROGRESS)

    def test_external_data_merged(self, repos):
        task = ReleaseTaskRecord(**make_task(status=TaskStatus.IN_PROGRESS, external_data={"a": 1}))
        repos.tasks.create_tasks([task])

        repos.tasks.transition_task(
            task.task_id, TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED,
            updates={"external_data": {"b": 2}},
        )
        assert repos.tasks.get_task(task.task_id).external_data == {"a": 1, "b": 2}

    def test_unknown_update_field_is_contract_violation(self, repos):
        task = ReleaseTaskRecord(**make_task())
        repos.tasks.create_tasks([task])
        with pytest.raises(ContractViolationError):
            repos.tasks.transition_task(
                task.task_id, TaskStatus.PENDING, TaskStatus.IN_PROGRESS,
                updates={"release_id": "other"},
            )

    def test_create_tasks_is_idempotent(self, repos):
        task = ReleaseTaskRecord(**make_task())
        assert repos.tasks.create_tasks([task]) == 1
        assert repos.tasks.create_tasks([task]) == 0


class TestUploadsAndSubmissions:

    def test_mark_used_all_or_nothing(self, repos, clock):
        first = ReleaseUploadRecord(**make_upload("rel-1", Platform.ANDROID))
        second = ReleaseUploadRecord(**make_upload("rel-1", Platform.IOS))
        repos.uploads.create_upload(first)
        repos.uploads.create_upload(second)

        assert repos.uploads.mark_used_atomic([first.upload_id], "task-a", None, clock.now)
        assert not repos.uploads.mark_used_atomic(
            [first.upload_id, second.upload_id], "task-b", None, clock.now
        )
        assert [u.upload_id for u in repos.uploads.list_unused("rel-1", UploadStage.REGRESSION)] == [
            second.upload_id
        ]

    def test_list_submissions_newest_first(self, repos, clock):
        older = SubmissionRecord(**make_submission("rel-1", Platform.ANDROID, created_at=clock.now))
        newer = SubmissionRecord(**make_submission(
            "rel-1", Platform.ANDROID, created_at=clock.now.replace(hour=12)
        ))
        repos.submissions.create_submission(older)
        repos.submissions.create_submission(newer)

        listed = repos.submissions.list_submissions("rel-1", Platform.ANDROID)
        assert [s.submission_id for s in listed] == [newer.submission_id, older.submission_id]

    def test_save_submission_checks_status(self, repos):
        submission = SubmissionRecord(**make_submission("rel-1", Platform.ANDROID))
        repos.submissions.create_submission(submission)
        changed = submission.model_copy(update={"status": SubmissionStatus.HALTED})

        assert not repos.submissions.save_submission(changed, expected_status=SubmissionStatus.APPROVED)
        assert repos.submissions.save_submission(changed, expected_status=SubmissionStatus.LIVE)

    def test_save_submission_rejects_illegal_status(self, repos):
        submission = SubmissionRecord(**make_submission("rel-1", Platform.ANDROID))
        repos.submissions.create_submission(submission)
        reopened = submission.model_copy(update={"status": SubmissionStatus.PENDING})

        with pytest.raises(ContractViolationError):
            repos.submissions.save_submission(reopened, expected_status=SubmissionStatus.LIVE)
