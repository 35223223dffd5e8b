"""Tests for harvest runs, the JSON Lines sink and the command line."""

import json

import pytest

from sdmx_harvest import cli
from sdmx_harvest.config import load_settings
from sdmx_harvest.exceptions import DataProviderError, InvariantViolation
from sdmx_harvest.models import DataStructure, Dimension
from sdmx_harvest.providers.static import StaticDataflowSource
from sdmx_harvest.services.harvest import HarvestRun, JsonLinesSink
from sdmx_harvest.tests.utils import make_codes, make_dataflow, make_structure


class TestHarvestRun:

    def test_run_writes_one_record_per_item(self, static_source, settings, tmp_path):
        path = tmp_path / "out" / "harvest.jsonl"
        with JsonLinesSink(path) as sink:
            summary = HarvestRun(static_source, settings, sink).run()

        lines = path.read_text(encoding="utf-8").splitlines()
        assert len(lines) == 5 == summary.records_written == sink.count
        first = json.loads(lines[0])
        assert first["identifier"].endswith("/NAMA_10_GDP?FREQ=A&UNIT=CP_MEUR&GEO=DE")
        assert first["titles"][0]["value"] == (
            "GDP and main components (FREQ: Annual, UNIT: CP_MEUR, GEO: Germany)"
        )
        assert first["geoLocations"] == [{"geoLocationPlace": "Germany"}]

    def test_summary_reports_skips(self, static_source, settings):
        summary = HarvestRun(static_source, settings).run()

        assert summary.completed
        assert summary.source == "TEST"
        assert summary.version == "SDEM-2024-01"
        assert summary.dataflows_expanded == 2
        assert summary.dataflows_skipped == 1
        assert summary.skipped_dataflow_ids == ["B"]
        assert summary.to_dict()["records_written"] == 5
        assert summary.logo_url is None

    def test_summary_carries_logo_url(self, static_source):
        settings = load_settings(_env_file=None, logo_url="https://example.org/logo.png")
        assert HarvestRun(static_source, settings).run().logo_url == "https://example.org/logo.png"

    def test_limit_stops_early(self, static_source, settings):
        summary = HarvestRun(static_source, settings).run(limit=2)
        assert summary.records_written == 2
        assert static_source.load_calls == ["A"]

    def test_zero_limit_writes_nothing(self, static_source, settings, tmp_path):
        path = tmp_path / "none.jsonl"
        sink = JsonLinesSink(path)
        summary = HarvestRun(static_source, settings, sink).run(limit=0)
        sink.close()

        assert summary.records_written == 0
        assert summary.completed
        assert static_source.load_calls == []
        assert not path.exists()

    def test_limit_equal_to_total_reads_everything(self, static_source, settings):
        summary = HarvestRun(static_source, settings).run(limit=5)
        assert summary.records_written == 5
        assert static_source.load_calls == ["A", "B", "C"]

    def test_records_are_lazy(self, static_source, settings):
        records = HarvestRun(static_source, settings).records()
        assert static_source.load_calls == []
        next(records)
        assert static_source.load_calls == ["A"]

    def test_identifiers_are_unique(self, static_source, settings):
        identifiers = [r.identifier for r in HarvestRun(static_source, settings).records()]
        assert len(identifiers) == len(set(identifiers))

    def test_pattern_excluding_everything_writes_nothing(self, gdp_structure, settings, caplog):
        source = StaticDataflowSource(
            dataflows=[make_dataflow("NAMA_10_GDP")],
            structures={"NAMA_10_GDP": gdp_structure},
            dataflow_pattern="PRC_.*",
        )
        summary = HarvestRun(source, settings).run()

        assert summary.records_written == 0
        assert summary.dataflows_excluded == 1
        assert "did not yield any records" in caplog.text

    def test_invariant_violation_propagates(self, settings):
        class EmptyDimensionResolver:
            def resolve(self, structure):
                return {dim.id: list(dim.codes) for dim in structure.dimensions}

        structure = DataStructure(
            id="X",
            dimensions=(Dimension(id="GEO", codes=make_codes("DE")), Dimension(id="UNIT")),
        )
        run = HarvestRun(StaticDataflowSource([make_dataflow("X")], {"X": structure}), settings)
        run.iterator.resolver = EmptyDimensionResolver()

        with pytest.raises(InvariantViolation):
            run.run()


class TestJsonLinesSink:

    def test_opens_lazily_when_called_directly(self, static_source, settings, tmp_path):
        sink = JsonLinesSink(tmp_path / "lazy.jsonl")
        for record in HarvestRun(static_source, settings).records():
            sink(record)
        sink.close()
        assert len((tmp_path / "lazy.jsonl").read_text(encoding="utf-8").splitlines()) == 5

    def test_non_ascii_is_kept(self, settings, tmp_path):
        source = StaticDataflowSource(
            dataflows=[make_dataflow("DEMO", name="Bevölkerung")],
            structures={"DEMO": make_structure("DEMO", [("GEO", ["AT"])], names={"AT": "Österreich"})},
        )
        path = tmp_path / "demo.jsonl"
        with JsonLinesSink(path) as sink:
            HarvestRun(source, settings, sink).run()
        assert "Österreich" in path.read_text(encoding="utf-8")


class ContextStaticSource(StaticDataflowSource):
    """Static source with the registry source's constructor and context manager."""

    def __init__(self, settings):
        super().__init__(
            dataflows=[make_dataflow("A", "DSD_A", "Population"), make_dataflow("B", "DSD_B")],
            structures={"DSD_A": make_structure("DSD_A", [("GEO", ["AT", "BE"])])},
            dataflow_pattern=settings.dataflow_regex,
            version="SDEM-TEST",
        )

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return None


class UnreachableSource(ContextStaticSource):
    def _list_all_dataflows(self):
        raise DataProviderError("listing unavailable", provider="TEST")


class TestCli:

    def test_successful_harvest(self, monkeypatch, tmp_path, capsys):
        monkeypatch.setattr(cli, "SdmxRegistrySource", ContextStaticSource)
        output = tmp_path / "records.jsonl"

        exit_code = cli.main(["--output", str(output), "--log-level", "WARNING"])

        assert exit_code == 0
        summary = json.loads(capsys.readouterr().out)
        assert summary["records_written"] == 2
        assert summary["skipped_dataflow_ids"] == ["B"]
        assert summary["version"] == "SDEM-TEST"
        assert len(output.read_text(encoding="utf-8").splitlines()) == 2

    def test_pattern_and_limit(self, monkeypatch, tmp_path, capsys):
        monkeypatch.setattr(cli, "SdmxRegistrySource", ContextStaticSource)

        exit_code = cli.main(["-o", str(tmp_path / "one.jsonl"), "--pattern", "A", "--limit", "1"])

        assert exit_code == 0
        summary = json.loads(capsys.readouterr().out)
        assert summary["records_written"] == 1
        assert summary["skipped_dataflow_ids"] == []

    def test_invalid_configuration_exits_2(self, tmp_path):
        assert cli.main(["-o", str(tmp_path / "x.jsonl"), "--pattern", "NAMA_("]) == 2

    def test_bad_environment_exits_2(self, monkeypatch, tmp_path):
        monkeypatch.setenv("SDEM_URL", "not a url")
        assert cli.main(["-o", str(tmp_path / "x.jsonl")]) == 2

    def test_unreachable_listing_exits_1(self, monkeypatch, tmp_path, capsys):
        monkeypatch.setattr(cli, "SdmxRegistrySource", UnreachableSource)

        exit_code = cli.main(["-o", str(tmp_path / "x.jsonl")])

        assert exit_code == 1
        report = json.loads(capsys.readouterr().out)
        assert report["error"] == "DataProviderError"
        assert report["details"]["provider"] == "TEST"

    def test_unknown_log_level_exits_2(self, monkeypatch, tmp_path):
        monkeypatch.setenv("LOG_LEVEL", "VERBOSE")
        assert cli.main(["-o", str(tmp_path / "x.jsonl"), "--pattern", "X"]) == 2

    def test_negative_limit_is_rejected(self, tmp_path, capsys):
        with pytest.raises(SystemExit) as exc_info:
            cli.main(["-o", str(tmp_path / "x.jsonl"), "--limit", "-1"])
        assert exc_info.value.code == 2
        assert "non-negative" in capsys.readouterr().err

    def test_aborted_harvest_keeps_previous_output(self, monkeypatch, tmp_path, capsys):
        monkeypatch.setattr(cli, "SdmxRegistrySource", UnreachableSource)
        output = tmp_path / "records.jsonl"
        output.write_text('{"identifier": "previous"}\n', encoding="utf-8")

        assert cli.main(["-o", str(output)]) == 1
        assert output.read_text(encoding="utf-8") == '{"identifier": "previous"}\n'

    def test_empty_harvest_truncates_output(self, monkeypatch, tmp_path, capsys):
        monkeypatch.setattr(cli, "SdmxRegistrySource", ContextStaticSource)
        output = tmp_path / "records.jsonl"
        output.write_text('{"identifier": "previous"}\n', encoding="utf-8")

        assert cli.main(["-o", str(output), "--pattern", "NOTHING"]) == 0
        assert output.read_text(encoding="utf-8") == ""
