"""Tests for the workflow parser."""

import pytest
import yaml

from gha_vulnscan.parser import Uses, parse_workflow, parse_workflow_text, parse_workflows_dir
from gha_vulnscan.parser.workflow_parser import _parse_triggers


# ---------------------------------------------------------------------------
# Uses.parse
# ---------------------------------------------------------------------------

class TestParseUses:
    def test_standard_tag_ref(self):
        uses = Uses.parse("actions/checkout@v3")
        assert uses.owner == "actions"
        assert uses.repo == "checkout"
        assert uses.git_ref == "v3"
        assert uses.subpath is None
        assert uses.ref_is_commit is False

    def test_commit_ref(self):
        sha = "af513c7a016048ae468971c52ed77d9562c7c819"
        uses = Uses.parse(f"actions/checkout@{sha}")
        assert uses.git_ref == sha
        assert uses.ref_is_commit is True

    def test_uppercase_commit_ref(self):
        uses = Uses.parse("actions/checkout@AF513C7A016048AE468971C52ED77D9562C7C819")
        assert uses.ref_is_commit is True

    def test_almost_sha_is_not_a_commit(self):
        """39 chars is not a full SHA-1."""
        uses = Uses.parse(f"actions/checkout@{'a' * 39}")
        assert uses.ref_is_commit is False

    def test_no_ref(self):
        uses = Uses.parse("actions/checkout")
        assert uses.owner == "actions"
        assert uses.repo == "checkout"
        assert uses.git_ref is None
        assert uses.ref_is_commit is False

    def test_branch_with_slash(self):
        uses = Uses.parse("pypa/gh-action-pypi-publish@release/v1")
        assert uses.repo == "gh-action-pypi-publish"
        assert uses.git_ref == "release/v1"

    def test_subpath(self):
        uses = Uses.parse("actions/aws/s3-upload@v1")
        assert uses.owner == "actions"
        assert uses.repo == "aws"
        assert uses.subpath == "s3-upload"
        assert uses.git_ref == "v1"

    def test_str_round_trips(self):
        assert str(Uses.parse("actions/aws/s3-upload@v1")) == "actions/aws/s3-upload@v1"
        assert str(Uses.parse("actions/checkout")) == "actions/checkout"

    @pytest.mark.parametrize("text", [
        "docker://alpine:3.8",
        "./.github/actions/my-action",
        "checkout@v3",
        "/checkout@v3",
        "",
    ])
    def test_unsupported_shapes_return_none(self, text):
        assert Uses.parse(text) is None


# ---------------------------------------------------------------------------
# _parse_triggers
# ---------------------------------------------------------------------------

class TestParseTriggers:
    def test_string_trigger(self):
        assert _parse_triggers("push") == ["push"]

    def test_list_trigger(self):
        assert _parse_triggers(["push", "pull_request"]) == ["push", "pull_request"]

    def test_dict_trigger_skips_line_marker(self):
        result = _parse_triggers({"push": None, "pull_request": None, "__line__": 3})
        assert result == ["push", "pull_request"]

    def test_none_returns_empty(self):
        assert _parse_triggers(None) == []


# ---------------------------------------------------------------------------
# parse_workflow (integration with fixture files)
# ---------------------------------------------------------------------------

class TestParseWorkflow:
    def test_metadata(self, vulnerable_workflow):
        assert vulnerable_workflow.name == "Vulnerable CI Example"
        assert vulnerable_workflow.triggers == ["push", "pull_request"]

    def test_keeps_raw_text(self, vulnerable_workflow, vulnerable_workflow_path):
        with open(vulnerable_workflow_path) as f:
            assert vulnerable_workflow.raw == f.read()

    def test_tree_is_a_mapping_node(self, vulnerable_workflow):
        assert isinstance(vulnerable_workflow.tree, yaml.MappingNode)

    def test_jobs_in_document_order(self, vulnerable_workflow):
        assert [j.job_id for j in vulnerable_workflow.jobs] == ["test", "build", "call-shared"]

    def test_reusable_workflow_job_is_not_normal(self, vulnerable_workflow):
        call = vulnerable_workflow.job("call-shared")
        assert call.is_normal is False
        assert call.uses == "some-org/shared/.github/workflows/ci.yml@v1"
        assert call.steps == []

    def test_normal_job(self, vulnerable_workflow):
        assert vulnerable_workflow.job("build").is_normal is True

    def test_step_indices_follow_document_order(self, vulnerable_workflow):
        build = vulnerable_workflow.job("build")
        assert [s.index for s in build.steps] == [0, 1, 2, 3, 4]

    def test_step_bodies(self, vulnerable_workflow):
        build = vulnerable_workflow.job("build")
        assert build.steps[0].is_run and not build.steps[0].is_uses
        assert build.steps[1].uses == "actions/setup-node@v2"
        assert build.steps[2].name == "Cache"

    def test_step_has_line_number(self, vulnerable_workflow):
        step = vulnerable_workflow.job("test").steps[1]
        assert step.line_number == 17

    def test_unknown_job_returns_none(self, vulnerable_workflow):
        assert vulnerable_workflow.job("deploy") is None

    def test_file_not_found(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            parse_workflow(str(tmp_path / "nonexistent.yml"))

    def test_invalid_yaml(self, tmp_path):
        bad_file = tmp_path / "bad.yml"
        bad_file.write_text("just a string, not a mapping")
        with pytest.raises(ValueError):
            parse_workflow(str(bad_file))


# ---------------------------------------------------------------------------
# parse_workflow_text: step indexing edge cases
# ---------------------------------------------------------------------------

class TestStepIndexing:
    def test_non_mapping_steps_are_kept(self):
        wf = parse_workflow_text(
            "jobs:\n"
            "  build:\n"
            "    steps:\n"
            "      - just a string\n"
            "      - uses: actions/checkout@v3\n"
        )
        steps = wf.job("build").steps
        assert len(steps) == 2
        assert steps[0].is_uses is False
        assert steps[0].raw == "just a string"
        assert steps[1].index == 1
        assert steps[1].uses == "actions/checkout@v3"

    def test_non_string_uses_is_not_an_action(self):
        wf = parse_workflow_text("jobs:\n  build:\n    steps:\n      - uses: 42\n")
        assert wf.job("build").steps[0].is_uses is False

    def test_job_without_steps(self):
        wf = parse_workflow_text("jobs:\n  build:\n    runs-on: ubuntu-latest\n")
        assert wf.job("build").steps == []

    def test_jobs_must_be_a_mapping(self):
        with pytest.raises(ValueError):
            parse_workflow_text("jobs: [a, b]\n")

    def test_empty_document(self):
        with pytest.raises(ValueError):
            parse_workflow_text("")


# ---------------------------------------------------------------------------
# parse_workflows_dir
# ---------------------------------------------------------------------------

class TestParseWorkflowsDir:
    def test_finds_all_workflows(self, fixtures_dir):
        workflows = parse_workflows_dir(fixtures_dir)
        assert len(workflows) == 2  # vulnerable + clean

    def test_skips_invalid_files(self, tmp_path):
        (tmp_path / "bad.yml").write_text("just a string")
        (tmp_path / "good.yml").write_text("jobs: {}\n")
        workflows = parse_workflows_dir(str(tmp_path))
        assert len(workflows) == 1

    def test_not_a_directory(self, tmp_path):
        fake = tmp_path / "not-a-dir"
        fake.write_text("hello")
        with pytest.raises(NotADirectoryError):
            parse_workflows_dir(str(fake))

    def test_empty_directory(self, tmp_path):
        assert parse_workflows_dir(str(tmp_path)) == []
