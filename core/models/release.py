"""
Release Models - The Release Being Orchestrated.

Created once through ReleaseStateMachine.create_release; afterwards the
orchestrator reads the fields it needs to decide which tasks run and
when. Build configuration is a closed tagged variant, one shape per CI
provider.

Exports:
    ManualUploadBuildConfig, JenkinsBuildConfig, GithubActionsBuildConfig,
    BuildConfig: Per-provider build configuration
    ReleaseRecord: Release record
"""

from datetime import datetime, timezone
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .enums import Platform, ReleaseType


class ManualUploadBuildConfig(BaseModel):
    """Builds are uploaded by people; build tasks wait on ManualBuildGate."""

    model_config = ConfigDict(extra="forbid")

    provider: Literal["manual_upload"] = "manual_upload"


class JenkinsBuildConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    provider: Literal["jenkins"] = "jenkins"
    job_url: str = Field(..., description="Jenkins job URL")
    credentials_ref: str = Field(..., description="Key Vault secret name holding the API token")


class GithubActionsBuildConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    provider: Literal["github_actions"] = "github_actions"
    repository: str = Field(..., description="owner/name")
    workflow_id: str = Field(..., description="Workflow file name or numeric id")
    ref: str = Field(default="main", description="Git ref the workflow runs on")


BuildConfig = Annotated[
    Union[ManualUploadBuildConfig, JenkinsBuildConfig, GithubActionsBuildConfig],
    Field(discriminator="provider"),
]


class ReleaseRecord(BaseModel):
    """
    A release of one tenant's app.

    kickoff_at and target_release_at are timezone-aware; naive values are
    treated as UTC.
    """

    release_id: str = Field(..., description="Release identifier")
    tenant_id: str = Field(..., description="Owning tenant")
    version: str = Field(..., description="Release version, e.g. 1.4.0")
    release_type: ReleaseType = ReleaseType.MINOR
    platforms: List[Platform] = Field(..., min_length=1)
    branch: Optional[str] = Field(default=None, description="Release branch once forked")
    kickoff_at: datetime
    target_release_at: datetime
    archived: bool = False
    build_config: BuildConfig = Field(default_factory=ManualUploadBuildConfig)
    project_management_enabled: bool = False
    test_management_enabled: bool = False
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("kickoff_at", "target_release_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @property
    def has_manual_build_upload(self) -> bool:
        """True iff builds arrive through manual upload instead of CI."""
        return isinstance(self.build_config, ManualUploadBuildConfig)

    def has_platform(self, platform: Platform) -> bool:
        return platform in self.platforms


__all__ = [
    'ManualUploadBuildConfig',
    'JenkinsBuildConfig',
    'GithubActionsBuildConfig',
    'BuildConfig',
    'ReleaseRecord',
]
