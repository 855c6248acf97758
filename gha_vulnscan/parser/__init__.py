from .workflow_parser import (
    Job,
    Step,
    Uses,
    Workflow,
    parse_workflow,
    parse_workflow_text,
    parse_workflows_dir,
)

__all__ = [
    "Job",
    "Step",
    "Uses",
    "Workflow",
    "parse_workflow",
    "parse_workflow_text",
    "parse_workflows_dir",
]
