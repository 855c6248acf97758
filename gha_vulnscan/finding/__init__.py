"""
Finding model: what an audit reports and where.

Locations are structural (job id, step index) and are only turned into
text spans later, by the locator, when a reporter needs them.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional, Union

from gha_vulnscan.parser.workflow_parser import Workflow


class Severity(Enum):
    UNKNOWN = "unknown"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Confidence(Enum):
    UNKNOWN = "unknown"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


SEVERITY_ORDER: dict[Severity, int] = {
    Severity.UNKNOWN: 0,
    Severity.LOW: 1,
    Severity.MEDIUM: 2,
    Severity.HIGH: 3,
}


@dataclass(frozen=True)
class StepLocation:
    """A step by its position in the job's ``steps:`` list."""
    index: int
    keys: tuple[str, ...] = ()   # narrows to a key inside the step, e.g. ("uses",)


@dataclass(frozen=True)
class JobLocation:
    id: str
    step: Optional[StepLocation] = None


@dataclass(frozen=True)
class WorkflowLocation:
    """A structural location: the whole workflow, a job, or a step in a job."""
    job: Optional[JobLocation] = None

    @classmethod
    def for_workflow(cls) -> "WorkflowLocation":
        return cls()

    @classmethod
    def for_job(cls, job_id: str) -> "WorkflowLocation":
        return cls(job=JobLocation(id=job_id))

    @classmethod
    def for_step(cls, job_id: str, index: int) -> "WorkflowLocation":
        return cls(job=JobLocation(id=job_id, step=StepLocation(index=index)))

    def with_keys(self, keys: list[str]) -> "WorkflowLocation":
        """Narrow a step location to one of the step's keys."""
        if self.job is None or self.job.step is None:
            raise ValueError("keys can only be attached to a step location")
        step = replace(self.job.step, keys=tuple(keys))
        return WorkflowLocation(job=replace(self.job, step=step))

    def annotated(self, annotation: str) -> "AnnotatedLocation":
        return AnnotatedLocation(location=self, annotation=annotation)

    def __str__(self) -> str:
        if self.job is None:
            return "(workflow)"
        if self.job.step is None:
            return f"jobs.{self.job.id}"
        text = f"jobs.{self.job.id}.steps[{self.job.step.index}]"
        for key in self.job.step.keys:
            text += f".{key}"
        return text


@dataclass(frozen=True)
class AnnotatedLocation:
    location: WorkflowLocation
    annotation: Optional[str] = None


@dataclass(frozen=True)
class Finding:
    """A single security finding produced by an audit."""
    audit_id: str           # e.g. "known-vulnerable-actions"
    description: str        # the audit's one-line description
    severity: Severity
    confidence: Confidence
    locations: tuple[AnnotatedLocation, ...]
    workflow: Workflow = field(compare=False, repr=False)

    @property
    def file_path(self) -> str:
        return self.workflow.file_path


class FindingBuilder:
    """
    Chained builder for Finding values.

        FindingBuilder("my-audit", "does a thing")
            .confidence(Confidence.HIGH)
            .severity(Severity.MEDIUM)
            .add_location(WorkflowLocation.for_job("build").annotated("why"))
            .build(workflow)
    """

    def __init__(self, audit_id: str, description: str):
        self._audit_id = audit_id
        self._description = description
        self._severity = Severity.UNKNOWN
        self._confidence = Confidence.UNKNOWN
        self._locations: list[AnnotatedLocation] = []

    def severity(self, severity: Severity) -> "FindingBuilder":
        self._severity = severity
        return self

    def confidence(self, confidence: Confidence) -> "FindingBuilder":
        self._confidence = confidence
        return self

    def add_location(
        self, location: Union[WorkflowLocation, AnnotatedLocation]
    ) -> "FindingBuilder":
        if isinstance(location, WorkflowLocation):
            location = AnnotatedLocation(location=location)
        self._locations.append(location)
        return self

    def build(self, workflow: Workflow) -> Finding:
        if not self._locations:
            raise ValueError(f"{self._audit_id}: a finding needs at least one location")
        return Finding(
            audit_id=self._audit_id,
            description=self._description,
            severity=self._severity,
            confidence=self._confidence,
            locations=tuple(self._locations),
            workflow=workflow,
        )
