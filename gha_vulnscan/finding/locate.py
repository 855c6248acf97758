"""
Locate findings in the original workflow text.

A finding carries a structural location ("job build, step 2"). The locator
resolves it against the YAML node tree produced by ``yaml.compose`` and
returns the exact source text and span. Two query primitives are enough:

  * the ``key: value`` pairs for a named key in a mapping node;
  * the direct children of a sequence node.

A query is a key path such as ``("jobs", "build", "steps")``; every segment
has to match exactly once.
"""

import logging
from dataclasses import dataclass

import yaml

from gha_vulnscan.finding import WorkflowLocation
from gha_vulnscan.parser.workflow_parser import Workflow

logger = logging.getLogger(__name__)


class LocationError(Exception):
    """A structural location could not be resolved to source text."""


class LocationNotFoundError(LocationError):
    """Nothing in the document matches the location."""


class AmbiguousLocationError(LocationError):
    """More than one node matches the location (e.g. a duplicated job id)."""


@dataclass(frozen=True)
class Point:
    line: int       # 0-based
    column: int     # 0-based


@dataclass(frozen=True)
class Feature:
    """Concrete source text for a location. ``raw[start_offset:end_offset] == text``."""
    text: str
    start_offset: int
    end_offset: int
    start: Point
    end: Point


def _point(raw: str, offset: int) -> Point:
    line_start = raw.rfind("\n", 0, offset) + 1
    return Point(line=raw.count("\n", 0, offset), column=offset - line_start)


def _node_end(node: yaml.Node) -> int:
    """
    End offset of a node's own text.

    PyYAML puts the end of a block collection at the next token, which
    would drag in trailing comments and the next line's indentation, so
    block collections end where their last child ends. An alias (``*name``)
    ends at its own mark, not at the anchored node.
    """
    if getattr(node, "is_alias", False):
        return node.end_mark.index
    if isinstance(node, yaml.ScalarNode) or node.flow_style or not node.value:
        return node.end_mark.index
    if isinstance(node, yaml.MappingNode):
        key, value = node.value[-1]
        return max(_node_end(key), _node_end(value))
    return _node_end(node.value[-1])


def _feature(raw: str, start: int, end: int) -> Feature:
    while end > start and raw[end - 1].isspace():
        end -= 1
    return Feature(
        text=raw[start:end],
        start_offset=start,
        end_offset=end,
        start=_point(raw, start),
        end=_point(raw, end),
    )


def _pairs_for_key(node: yaml.Node, key: str) -> list[tuple[yaml.Node, yaml.Node]]:
    """All ``key: value`` pairs for ``key`` in a mapping node, in document order."""
    if not isinstance(node, yaml.MappingNode):
        return []
    return [
        (k, v) for k, v in node.value
        if isinstance(k, yaml.ScalarNode) and k.value == key
    ]


def _sequence_items(node: yaml.Node, where: str) -> list[yaml.Node]:
    """Direct children of a sequence node, unfiltered and in document order."""
    if not isinstance(node, yaml.SequenceNode):
        raise LocationNotFoundError(f"`{where}` is not a sequence")
    return list(node.value)


def query(root: yaml.Node, path: tuple[str, ...]) -> tuple[yaml.Node, yaml.Node]:
    """
    Follow a key path from ``root`` and return the final ``(key, value)`` pair.

    Raises:
        LocationNotFoundError: If a segment matches nothing.
        AmbiguousLocationError: If a segment matches more than once.
    """
    if not path:
        raise ValueError("empty query path")

    node = root
    pair = None
    for depth, key in enumerate(path):
        where = ".".join(path[: depth + 1])
        matches = _pairs_for_key(node, key)
        if not matches:
            raise LocationNotFoundError(f"no `{where}` in workflow")
        if len(matches) > 1:
            raise AmbiguousLocationError(f"`{where}` is defined {len(matches)} times")
        pair = matches[0]
        node = pair[1]
    return pair


class Locator:
    """Turns structural workflow locations into concrete Features."""

    def concretize(self, workflow: Workflow, location: WorkflowLocation) -> Feature:
        raw = workflow.raw

        if location.job is None:
            # The whole workflow is flagged.
            return Feature(
                text=raw,
                start_offset=0,
                end_offset=len(raw),
                start=Point(0, 0),
                end=_point(raw, len(raw)),
            )

        job = location.job
        if job.step is None:
            key, value = query(workflow.tree, ("jobs", job.id))
            return _feature(raw, key.start_mark.index, max(_node_end(key), _node_end(value)))

        where = f"jobs.{job.id}.steps"
        _, steps = query(workflow.tree, ("jobs", job.id, "steps"))
        items = _sequence_items(steps, where)

        index = job.step.index
        if not 0 <= index < len(items):
            raise LocationNotFoundError(
                f"`{where}` has {len(items)} step(s), no step at index {index}"
            )
        step_node = items[index]

        if job.step.keys:
            key, value = query(step_node, job.step.keys)
            return _feature(raw, key.start_mark.index, max(_node_end(key), _node_end(value)))

        logger.debug("Located %s at offset %d", location, step_node.start_mark.index)
        return _feature(raw, step_node.start_mark.index, _node_end(step_node))
