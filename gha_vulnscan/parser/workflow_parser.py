"""
Parser for GitHub Actions workflow files.

Reads .yml/.yaml files and produces two views of the same raw text:

  * the YAML node tree (``yaml.compose``), which keeps source positions and
    is what the locator queries when it turns a finding into a text span;
  * a structural model (Workflow / Job / Step dataclasses) that audits walk.

Both views are built from one string, so a step index computed on the model
always names the same sequence entry in the node tree.
"""

import copy
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Union

import yaml

logger = logging.getLogger(__name__)

# A full SHA-1 commit hash is 40 hex characters
_COMMIT_RE = re.compile(r"^[0-9a-fA-F]{40}$")


class _LineLoader(yaml.SafeLoader):
    """PyYAML loader that stores the start line number on every mapping node."""


def _construct_mapping(loader: _LineLoader, node: yaml.MappingNode) -> dict[Any, Any]:
    mapping: dict[Any, Any] = loader.construct_mapping(node, deep=True)
    mapping["__line__"] = node.start_mark.line + 1  # YAML lines are 0-indexed
    return mapping


_LineLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG,
    _construct_mapping,
)


class _TreeLoader(yaml.SafeLoader):
    """
    PyYAML loader for the node tree.

    ``yaml.compose`` hands back the anchored node itself for an alias, with
    the anchor's marks. Here an alias becomes a shallow copy of that node
    carrying the alias's own marks and ``is_alias = True``.
    """

    def compose_node(self, parent, index):
        if not self.check_event(yaml.AliasEvent):
            return super().compose_node(parent, index)
        event = self.peek_event()
        alias = copy.copy(super().compose_node(parent, index))
        alias.start_mark = event.start_mark
        alias.end_mark = event.end_mark
        alias.is_alias = True
        return alias


@dataclass(frozen=True)
class Uses:
    """A parsed ``uses: owner/repo[/path][@ref]`` action reference."""
    owner: str                  # e.g. "actions"
    repo: str                   # e.g. "checkout"
    subpath: Optional[str]      # e.g. "s3-upload" in "actions/aws/s3-upload@v1"
    git_ref: Optional[str]      # e.g. "v3", a branch, or a commit SHA

    @classmethod
    def parse(cls, uses_string: str) -> Optional["Uses"]:
        """Parse an action reference, returning None for unsupported shapes."""
        if not uses_string:
            return None

        # Handle docker:// and ./ (local) actions
        if uses_string.startswith("docker://") or uses_string.startswith("./"):
            logger.debug("Skipping local/docker action: %s", uses_string)
            return None

        if "@" in uses_string:
            action_path, git_ref = uses_string.rsplit("@", 1)
        else:
            action_path, git_ref = uses_string, None

        parts = action_path.split("/", 2)
        if len(parts) < 2 or not parts[0] or not parts[1]:
            logger.debug("Malformed uses reference: %s", uses_string)
            return None

        return cls(
            owner=parts[0],
            repo=parts[1],
            subpath=parts[2] if len(parts) == 3 else None,
            git_ref=git_ref or None,
        )

    @property
    def ref_is_commit(self) -> bool:
        return self.git_ref is not None and bool(_COMMIT_RE.match(self.git_ref))

    def __str__(self) -> str:
        path = f"{self.owner}/{self.repo}"
        if self.subpath:
            path += f"/{self.subpath}"
        return f"{path}@{self.git_ref}" if self.git_ref else path


@dataclass
class Step:
    """A single entry of a job's ``steps:`` list.

    ``index`` is the entry's position in the YAML sequence. Entries that are
    not mappings are still kept (with no body) so indices never shift.
    """
    index: int
    name: Optional[str]
    uses: Optional[str]
    run: Optional[str]
    raw: Any
    line_number: Optional[int] = None

    @property
    def is_uses(self) -> bool:
        return isinstance(self.uses, str)

    @property
    def is_run(self) -> bool:
        return self.run is not None


@dataclass
class Job:
    """A single job within a workflow."""
    job_id: str
    name: Optional[str]
    uses: Optional[str]     # set for reusable workflow calls
    steps: list[Step]
    raw: dict[str, Any]
    line_number: Optional[int] = None

    @property
    def is_normal(self) -> bool:
        """False for jobs that call a reusable workflow instead of running steps."""
        return self.uses is None


@dataclass
class Workflow:
    """A parsed GitHub Actions workflow."""
    file_path: str
    raw: str
    tree: yaml.Node
    name: Optional[str]
    triggers: list[str]
    jobs: list[Job]
    data: dict[str, Any] = field(default_factory=dict)

    def job(self, job_id: str) -> Optional[Job]:
        for job in self.jobs:
            if job.job_id == job_id:
                return job
        return None


def _parse_step(index: int, step_raw: Any) -> Step:
    """Parse a raw step entry into a Step dataclass."""
    if not isinstance(step_raw, dict):
        logger.debug("Step %d is not a mapping (%s)", index, type(step_raw).__name__)
        return Step(index=index, name=None, uses=None, run=None, raw=step_raw)

    uses = step_raw.get("uses")
    run = step_raw.get("run")
    return Step(
        index=index,
        name=step_raw.get("name"),
        uses=uses if isinstance(uses, str) else None,
        run=str(run) if run is not None else None,
        raw=step_raw,
        line_number=step_raw.get("__line__"),
    )


def _parse_triggers(on_field: Union[str, list[str], dict[str, Any], None]) -> list[str]:
    """Normalize the 'on' field into a list of trigger names."""
    if isinstance(on_field, str):
        return [on_field]
    elif isinstance(on_field, list):
        return on_field
    elif isinstance(on_field, dict):
        return [k for k in on_field.keys() if k != "__line__"]
    return []


def _parse_job(job_id: str, job_raw: Any) -> Job:
    """Parse a raw job dictionary into a Job dataclass."""
    if not isinstance(job_raw, dict):
        job_raw = {}
    steps_raw = job_raw.get("steps") or []
    if not isinstance(steps_raw, list):
        logger.debug("Job '%s' has a non-list 'steps' value, ignoring it", job_id)
        steps_raw = []
    logger.debug("Parsing job '%s' with %d step(s)", job_id, len(steps_raw))
    uses = job_raw.get("uses")
    return Job(
        job_id=str(job_id),
        name=job_raw.get("name"),
        uses=str(uses) if uses is not None else None,
        steps=[_parse_step(i, s) for i, s in enumerate(steps_raw)],
        raw=job_raw,
        line_number=job_raw.get("__line__"),
    )


def parse_workflow_text(raw: str, file_path: str = "<string>") -> Workflow:
    """
    Parse workflow YAML text.

    Args:
        raw: The full workflow document.
        file_path: Label used for the workflow in findings and reports.

    Returns:
        A Workflow carrying the raw text, its node tree and the job model.

    Raises:
        yaml.YAMLError: If the text isn't valid YAML.
        ValueError: If the document isn't a YAML mapping.
    """
    tree = yaml.compose(raw, Loader=_TreeLoader)
    data = yaml.load(raw, Loader=_LineLoader)  # noqa: S506  # _LineLoader is safe

    if not isinstance(tree, yaml.MappingNode) or not isinstance(data, dict):
        logger.error("Document is not a valid YAML mapping: %s", file_path)
        raise ValueError(f"Workflow file is not a valid YAML mapping: {file_path}")

    jobs_raw = data.get("jobs") or {}
    if not isinstance(jobs_raw, dict):
        raise ValueError(f"Workflow 'jobs' is not a mapping: {file_path}")

    jobs = [
        _parse_job(job_id, job_data)
        for job_id, job_data in jobs_raw.items()
        if job_id != "__line__"
    ]
    triggers = _parse_triggers(data.get("on", data.get(True, [])))
    logger.debug(
        "Parsed '%s': %d job(s), triggers=%s",
        data.get("name", "(unnamed)"), len(jobs), triggers,
    )

    return Workflow(
        file_path=file_path,
        raw=raw,
        tree=tree,
        name=data.get("name"),
        triggers=triggers,
        jobs=jobs,
        data=data,
    )


def parse_workflow(file_path: str) -> Workflow:
    """
    Parse a single GitHub Actions workflow YAML file.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        yaml.YAMLError: If the file isn't valid YAML.
        ValueError: If the file isn't a YAML mapping.
    """
    path = Path(file_path)
    if not path.exists():
        raise FileNotFoundError(f"Workflow file not found: {file_path}")

    logger.info("Parsing workflow: %s", file_path)
    raw = path.read_text(encoding="utf-8")
    return parse_workflow_text(raw, file_path=str(path))


def parse_workflows_dir(dir_path: str) -> list[Workflow]:
    """
    Parse all workflow files in a directory.

    Args:
        dir_path: Path to a directory containing .yml/.yaml files
                  (typically .github/workflows/).

    Returns:
        A list of parsed Workflow objects.
    """
    path = Path(dir_path)
    if not path.is_dir():
        raise NotADirectoryError(f"Not a directory: {dir_path}")

    yaml_files = sorted(f for f in path.iterdir() if f.suffix in (".yml", ".yaml"))
    logger.debug("Found %d YAML file(s) in %s", len(yaml_files), dir_path)

    workflows = []
    for file in yaml_files:
        try:
            workflows.append(parse_workflow(str(file)))
        except (ValueError, yaml.YAMLError) as e:
            logger.warning("Skipping invalid workflow %s: %s", file.name, e)

    logger.info("Parsed %d workflow(s) from %s", len(workflows), dir_path)
    return workflows
