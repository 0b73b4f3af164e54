"""
On-disk document schemas for the filesystem adapters.

External records are parsed through these pydantic models and converted to
domain types before any orchestration logic sees them.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from testgate.domain.models import (
    Component,
    ExecutionSource,
    RunRequest,
    RunState,
    ScenarioDefinition,
    ScenarioParam,
    VersionSet,
)

# =============================================================================
# VERSION SET
# =============================================================================


class ComponentDocument(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1)
    artifact_ref: str = Field(min_length=1)


class VersionSetDocument(BaseModel):
    """A VersionSet record as stored on disk."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1)
    application: str = Field(min_length=1)
    components: list[ComponentDocument] = Field(default_factory=list)
    trigger_context: str = "push"
    trigger_component: str | None = None
    annotations: dict[str, str] = Field(default_factory=dict)
    rerun_request: str | None = None
    testing_finished_at: datetime | None = None
    resource_version: int = 0

    def to_domain(self) -> VersionSet:
        return VersionSet(
            name=self.name,
            application=self.application,
            components=tuple(
                Component(name=c.name, artifact_ref=c.artifact_ref)
                for c in self.components
            ),
            trigger_context=self.trigger_context,
            trigger_component=self.trigger_component,
            annotations=tuple(sorted(self.annotations.items())),
            rerun_request=self.rerun_request,
            testing_finished_at=self.testing_finished_at,
            resource_version=str(self.resource_version),
        )

    @classmethod
    def from_domain(
        cls, version_set: VersionSet, resource_version: int
    ) -> "VersionSetDocument":
        return cls(
            name=version_set.name,
            application=version_set.application,
            components=[
                ComponentDocument(name=c.name, artifact_ref=c.artifact_ref)
                for c in version_set.components
            ],
            trigger_context=version_set.trigger_context,
            trigger_component=version_set.trigger_component,
            annotations=dict(version_set.annotations),
            rerun_request=version_set.rerun_request,
            testing_finished_at=version_set.testing_finished_at,
            resource_version=resource_version,
        )


# =============================================================================
# SCENARIO
# =============================================================================


class ParamDocument(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1)
    value: str | list[str]

    def to_domain(self) -> ScenarioParam:
        value = self.value if isinstance(self.value, str) else tuple(self.value)
        return ScenarioParam(name=self.name, value=value)

    @classmethod
    def from_domain(cls, param: ScenarioParam) -> "ParamDocument":
        value = param.value if isinstance(param.value, str) else list(param.value)
        return cls(name=param.name, value=value)


class SourceDocument(BaseModel):
    model_config = ConfigDict(extra="forbid")

    resolver: str = Field(min_length=1)
    params: dict[str, str] = Field(default_factory=dict)

    def to_domain(self) -> ExecutionSource:
        return ExecutionSource(
            resolver=self.resolver, params=tuple(sorted(self.params.items()))
        )


class ScenarioDocument(BaseModel):
    """A ScenarioDefinition as stored in the catalog directory."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1)
    application: str = Field(min_length=1)
    source: SourceDocument
    params: list[ParamDocument] = Field(default_factory=list)
    contexts: list[str] = Field(default_factory=list)
    valid: bool = True
    invalid_reason: str = ""

    @field_validator("params")
    @classmethod
    def _unique_param_names(cls, params: list[ParamDocument]) -> list[ParamDocument]:
        names = [p.name for p in params]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"duplicate parameter names: {duplicates}")
        return params

    def to_domain(self) -> ScenarioDefinition:
        return ScenarioDefinition(
            name=self.name,
            application=self.application,
            source=self.source.to_domain(),
            params=tuple(p.to_domain() for p in self.params),
            contexts=tuple(self.contexts),
            valid=self.valid,
            invalid_reason=self.invalid_reason,
        )


# =============================================================================
# TEST RUN
# =============================================================================


class RunDocument(BaseModel):
    """A TestRun as recorded by the filesystem execution engine."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1)
    source: SourceDocument
    params: list[ParamDocument] = Field(default_factory=list)
    labels: dict[str, str] = Field(default_factory=dict)
    annotations: dict[str, str] = Field(default_factory=dict)
    protective_hold: bool = False
    finished: bool = False
    succeeded: bool | None = None
    deletion_requested: bool = False
    results: dict[str, str] = Field(default_factory=dict)
    start_time: datetime | None = None
    completion_time: datetime | None = None
    updated_at: datetime | None = None
    message: str = ""

    @classmethod
    def from_request(cls, request: RunRequest, now: datetime) -> "RunDocument":
        return cls(
            name=request.name,
            source=SourceDocument(
                resolver=request.source.resolver, params=dict(request.source.params)
            ),
            params=[ParamDocument.from_domain(p) for p in request.params],
            labels=dict(request.labels),
            protective_hold=request.protective_hold,
            start_time=now,
            updated_at=now,
        )

    def to_domain(self) -> RunState:
        return RunState(
            name=self.name,
            labels=tuple(sorted(self.labels.items())),
            finished=self.finished,
            succeeded=self.succeeded,
            deletion_requested=self.deletion_requested,
            results=tuple(sorted(self.results.items())),
            start_time=self.start_time,
            completion_time=self.completion_time,
            updated_at=self.updated_at,
            message=self.message,
            protective_hold=self.protective_hold,
        )


def dump(document: BaseModel) -> dict[str, Any]:
    """JSON-compatible dict of a document."""
    return document.model_dump(mode="json")
