"""Tests for the command line interface."""

import json
import logging

import pytest
from click.testing import CliRunner
from rich.console import Console

from genome_repository import __version__
from genome_repository.cli import main
from genome_repository.cli.output import use_rich
from genome_repository.errors import ExtractionError, PipelineError
from genome_repository.report import RunReport


@pytest.fixture(autouse=True)
def _plain_output(monkeypatch, tmp_path):
    monkeypatch.setenv("GENOME_REPOSITORY_RICH", "0")
    monkeypatch.setattr("genome_repository.cli.logging.LOG_DIR", tmp_path / "logs")
    yield
    package_logger = logging.getLogger("genome_repository")
    for handler in package_logger.handlers[:]:
        package_logger.removeHandler(handler)
        handler.close()
    package_logger.setLevel(logging.NOTSET)


@pytest.fixture
def runner():
    return CliRunner()


class StubPipeline:
    instances = []
    error = None

    def __init__(self, **kwargs):
        self.kwargs = kwargs
        self.report = RunReport(steps=[s.value for s in kwargs["steps"]])
        StubPipeline.instances.append(self)

    def execute(self):
        self.report.finish()
        if StubPipeline.error is not None:
            self.report.add_error(StubPipeline.error)
            raise PipelineError(self.report.errors)
        return self.report


@pytest.fixture
def stub_pipeline(monkeypatch):
    StubPipeline.instances = []
    StubPipeline.error = None
    monkeypatch.setattr("genome_repository.pipeline.RepositoryPipeline", StubPipeline)
    return StubPipeline


class TestMain:
    def test_version(self, runner):
        result = runner.invoke(main, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_help_without_command(self, runner):
        result = runner.invoke(main, [])
        assert result.exit_code == 0
        assert "index" in result.output


class TestRun:
    def test_all_steps_by_default(self, runner, stub_pipeline, tmp_path):
        result = runner.invoke(main, ["run"])
        assert result.exit_code == 0, result.output
        assert "Repository run SUCCESS" in result.output
        [pipeline] = stub_pipeline.instances
        assert [s.value for s in pipeline.kwargs["steps"]] == ["import", "merge", "index"]
        assert pipeline.kwargs["only_sources"] is None
        assert pipeline.kwargs["sink_factory"] is None
        assert (tmp_path / "logs" / "run.log").exists()

    def test_options_forwarded(self, runner, stub_pipeline, tmp_path):
        result = runner.invoke(
            main,
            ["run", "--step", "import", "--source", "ega", "--read-only",
             "--alias", "repository-test", "--es-url", "http://es.test:9200"],
        )
        assert result.exit_code == 0, result.output
        kwargs = stub_pipeline.instances[0].kwargs
        assert [s.value for s in kwargs["steps"]] == ["import"]
        assert kwargs["only_sources"] == ("ega",)
        assert kwargs["read_only"] is True
        assert kwargs["alias"] == "repository-test"
        assert callable(kwargs["sink_factory"])
        assert (tmp_path / "logs" / "run_ega.log").exists()

    def test_failure_exit_code(self, runner, stub_pipeline):
        stub_pipeline.error = ExtractionError("gdc", "connection refused")
        result = runner.invoke(main, ["run"])
        assert result.exit_code == 1
        assert "Repository run FAILURE" in result.output
        assert "connection refused" in result.output

    def test_unknown_source_is_usage_error(self, runner, monkeypatch):
        def reject(**kwargs):
            raise ValueError("Unknown source(s): nope")

        monkeypatch.setattr("genome_repository.pipeline.RepositoryPipeline", reject)
        result = runner.invoke(main, ["run", "--source", "nope"])
        assert result.exit_code == 2
        assert "Unknown source(s): nope" in result.output

    def test_invalid_step(self, runner, stub_pipeline):
        result = runner.invoke(main, ["run", "--step", "publish"])
        assert result.exit_code == 2
        assert stub_pipeline.instances == []


@pytest.fixture
def cluster(monkeypatch, make_sink):
    sink = make_sink()
    monkeypatch.setattr("genome_repository.cli.index._open_sink", lambda es_url: sink)
    for name in [
        "repository-261015_120000",
        "repository-261016_120000",
        "repository-261017_120000",
        "repository-261018_120000",
        "other-index",
    ]:
        sink.add_generation(name)
    sink.aliases["repository"] = {"repository-261017_120000"}
    return sink


class TestIndexCommands:
    def test_list(self, runner, cluster):
        result = runner.invoke(main, ["index", "list"])
        assert result.exit_code == 0, result.output
        assert result.output.splitlines() == [
            "repository-261018_120000",
            "repository-261017_120000 *",
            "repository-261016_120000",
            "repository-261015_120000",
        ]
        assert cluster.closed

    def test_list_empty(self, runner, cluster):
        result = runner.invoke(main, ["index", "list", "--alias", "nothing"])
        assert "No generations for alias 'nothing'." in result.output

    def test_prune_dry_run(self, runner, cluster):
        result = runner.invoke(main, ["index", "prune", "--retain", "1", "--dry-run"])
        assert result.exit_code == 0, result.output
        assert "Would delete repository-261016_120000" in result.output
        assert "repository-261017_120000" not in result.output
        assert len(cluster.indices) == 5

    def test_prune(self, runner, cluster):
        result = runner.invoke(main, ["index", "prune", "--retain", "2"])
        assert result.exit_code == 0, result.output
        assert set(cluster.indices) == {
            "repository-261018_120000",
            "repository-261017_120000",
            "other-index",
        }

    def test_nothing_to_prune(self, runner, cluster):
        result = runner.invoke(main, ["index", "prune"])
        assert "Deleted repository-261015_120000" in result.output
        result = runner.invoke(main, ["index", "prune"])
        assert "Nothing to prune." in result.output

    def test_sink_error(self, runner, cluster):
        cluster.fail.add("list_names")
        result = runner.invoke(main, ["index", "list"])
        assert result.exit_code == 1
        assert "injected list_names failure" in result.output

    def test_invalid_retain(self, runner, cluster):
        result = runner.invoke(main, ["index", "prune", "--retain", "0"])
        assert result.exit_code == 1
        assert "retain must be at least 1" in result.output


class TestArchivesCommand:
    def test_json(self, runner):
        result = runner.invoke(main, ["archives", "--json"])
        assert result.exit_code == 0, result.output
        archives = {a["code"]: a for a in json.loads(result.output)}
        assert archives["ega"]["provenance"] == "released"
        assert archives["aws-virginia"]["provenance"] == "pre-release"
        assert archives["gdc"]["provenance"] == "unclassified"

    def test_plain(self, runner):
        result = runner.invoke(main, ["archives"])
        assert result.exit_code == 0, result.output
        assert "ega\tega\tEGA_ARCHIVE\treleased" in result.output.splitlines()

    def test_plain_flag_overrides_rich(self, runner, monkeypatch):
        monkeypatch.setenv("GENOME_REPOSITORY_RICH", "1")
        result = runner.invoke(main, ["archives", "--plain"])
        assert result.exit_code == 0, result.output
        assert "ega\tega\tEGA_ARCHIVE\treleased" in result.output.splitlines()


class TestOutputChoice:
    def test_plain_flag_wins(self, monkeypatch):
        monkeypatch.setenv("GENOME_REPOSITORY_RICH", "1")
        assert use_rich(plain=True) is False

    @pytest.mark.parametrize("value, expected", [("yes", True), ("1", True), ("no", False)])
    def test_env_override(self, monkeypatch, value, expected):
        monkeypatch.setenv("GENOME_REPOSITORY_RICH", value)
        assert use_rich() is expected

    def test_no_color_means_plain(self, monkeypatch):
        monkeypatch.delenv("GENOME_REPOSITORY_RICH")
        monkeypatch.setenv("NO_COLOR", "")
        monkeypatch.setattr(
            "genome_repository.cli.output.console", Console(force_terminal=True)
        )
        assert use_rich() is False

    @pytest.mark.parametrize("terminal", [True, False])
    def test_follows_terminal(self, monkeypatch, terminal):
        monkeypatch.delenv("GENOME_REPOSITORY_RICH")
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.setattr(
            "genome_repository.cli.output.console", Console(force_terminal=terminal)
        )
        assert use_rich() is terminal

    def test_rich_tables_when_forced(self, runner, cluster, monkeypatch):
        monkeypatch.setenv("GENOME_REPOSITORY_RICH", "1")
        result = runner.invoke(main, ["index", "list"])
        assert result.exit_code == 0, result.output
        assert "Generations of 'repository'" in result.output
        assert "serving" in result.output

    def test_plain_listing_when_forced_rich(self, runner, cluster, monkeypatch):
        monkeypatch.setenv("GENOME_REPOSITORY_RICH", "1")
        result = runner.invoke(main, ["index", "list", "--plain"])
        assert result.exit_code == 0, result.output
        assert result.output.splitlines()[1] == "repository-261017_120000 *"

    def test_plain_report_when_forced_rich(self, runner, stub_pipeline, monkeypatch):
        monkeypatch.setenv("GENOME_REPOSITORY_RICH", "1")
        result = runner.invoke(main, ["run", "--plain"])
        assert result.exit_code == 0, result.output
        assert "Repository run SUCCESS" in result.output
