"""Tests for the sweep runner."""

import json
from typing import List
from unittest.mock import patch

import pytest

from conftest import fio_document, fio_section
from disk_bench.archive import ArchiveWriter
from disk_bench.config import resolve_config
from disk_bench.runner import SweepRunner, cleanup_test_file, iter_test_cases, prepare_test_file


class FakeFioClient:
    """Records calls and returns canned fio output per test case."""

    def __init__(self, outputs=None):
        self.outputs = outputs or {}
        self.calls: List[tuple] = []

    def run(self, test_case, filename):
        self.calls.append((test_case.name, filename))
        if test_case.name in self.outputs:
            return self.outputs[test_case.name]
        return json.dumps(fio_document(test_case.name), indent=2)


class InterruptingFioClient(FakeFioClient):
    """Raises KeyboardInterrupt once `finished` test cases have run."""

    def __init__(self, finished: int):
        super().__init__()
        self.finished = finished

    def run(self, test_case, filename):
        if len(self.calls) == self.finished:
            raise KeyboardInterrupt
        return super().run(test_case, filename)


class TestIterTestCases:
    """Tests for sweep enumeration order."""

    def test_nested_order(self, sweep_config):
        names = [case.name for case in iter_test_cases(sweep_config)]
        assert names == [
            "randrw_70read_4k_qd1_jobs1",
            "randrw_70read_4k_qd2_jobs1",
            "randrw_50read_4k_qd1_jobs1",
            "randrw_50read_4k_qd2_jobs1",
            "randrw_70read_8k_qd1_jobs1",
            "randrw_70read_8k_qd2_jobs1",
            "randrw_50read_8k_qd1_jobs1",
            "randrw_50read_8k_qd2_jobs1",
        ]

    @pytest.mark.parametrize(
        "bs, mix, qd, jobs",
        [("4k", "70", "1", "1"), ("4k 8k 16k", "70 50", "1 2 4 8", "1 2"), ("4k", "70", "", "1")],
    )
    def test_count_matches_product(self, tmp_path, bs, mix, qd, jobs):
        config = resolve_config(
            environ={
                "BS_LIST": bs,
                "MIX_LIST": mix,
                "JOBS_LIST": jobs,
                "OUTPUT_DIR": str(tmp_path),
            },
            overrides={"iodepths": qd},
            hosttag="h",
        )
        assert len(list(iter_test_cases(config))) == config.total_tests

    def test_lazy(self, sweep_config):
        cases = iter_test_cases(sweep_config)
        assert next(cases).name == "randrw_70read_4k_qd1_jobs1"


class TestSweepRunner:
    """Tests for SweepRunner.run_sweep."""

    def _run(self, config, client):
        runner = SweepRunner(config, client, preallocate=False)
        return runner.run_sweep()

    def test_results_in_sweep_order(self, sweep_config):
        client = FakeFioClient()
        results = self._run(sweep_config, client)
        expected = [case.name for case in iter_test_cases(sweep_config)]
        assert len(results) == sweep_config.total_tests
        assert [entry.name for entry in results] == expected
        assert [name for name, _ in client.calls] == expected

    def test_shared_scratch_file(self, sweep_config):
        client = FakeFioClient()
        self._run(sweep_config, client)
        assert {filename for _, filename in client.calls} == {sweep_config.test_file}

    def test_archive_matches_raw_results(self, sweep_config):
        client = FakeFioClient()
        self._run(sweep_config, client)
        documents = json.loads(sweep_config.json_path.read_text())
        assert [d["jobs"][0]["jobname"] for d in documents] == [n for n, _ in client.calls]

    def test_failed_run_degrades(self, sweep_config):
        client = FakeFioClient(outputs={"randrw_70read_4k_qd2_jobs1": ""})
        results = self._run(sweep_config, client)
        assert len(results) == sweep_config.total_tests
        failed = results.entries[1]
        assert failed.name == "randrw_70read_4k_qd2_jobs1"
        assert failed.metrics.read_iops == 0.0
        documents = json.loads(sweep_config.json_path.read_text())
        assert documents[1] is None

    def test_single_highlight_scenario(self, tmp_path):
        config = resolve_config(
            environ={},
            overrides={
                "block_sizes": "4k",
                "mixes": "70",
                "iodepths": "1",
                "jobs": "1",
                "file_dir": str(tmp_path),
                "output_dir": str(tmp_path / "out"),
            },
            hosttag="h",
        )
        client = FakeFioClient(
            outputs={
                "randrw_70read_4k_qd1_jobs1": json.dumps(
                    fio_document(
                        read=fio_section(9000.5, 100000.0, 157000),
                        write=fio_section(3000.2, 200000.0, 500000),
                    )
                )
            }
        )
        results = self._run(config, client)

        assert [entry.name for entry in results] == ["randrw_70read_4k_qd1_jobs1"]
        highlighted = results.find_highlighted()
        assert highlighted is results.entries[0]
        assert highlighted.metrics.read_p999_ms == 0.157
        assert highlighted.metrics.write_p999_ms == 0.5
        assert len(json.loads(config.json_path.read_text())) == 1

    def test_progress_indicator(self, sweep_config, capsys):
        self._run(sweep_config, FakeFioClient())
        out = capsys.readouterr().out
        total = sweep_config.total_tests
        for current in range(1, total + 1):
            assert f"[{current}/{total}]" in out

    def test_scratch_file_removed(self, sweep_config):
        sweep_config.test_file.parent.mkdir(parents=True, exist_ok=True)
        sweep_config.test_file.write_bytes(b"\0" * 16)
        self._run(sweep_config, FakeFioClient())
        assert not sweep_config.test_file.exists()

    def test_scratch_file_removed_on_abort(self, sweep_config):
        sweep_config.test_file.parent.mkdir(parents=True, exist_ok=True)
        sweep_config.test_file.write_bytes(b"\0")
        with pytest.raises(KeyboardInterrupt):
            self._run(sweep_config, InterruptingFioClient(finished=1))
        assert not sweep_config.test_file.exists()
        text = sweep_config.json_path.read_text()
        assert text.startswith("[") and not text.rstrip().endswith("]")

    def test_custom_archive(self, sweep_config, tmp_path):
        archive = ArchiveWriter(tmp_path / "custom.json")
        SweepRunner(sweep_config, FakeFioClient(), archive=archive, preallocate=False).run_sweep()
        assert archive.closed
        assert len(json.loads((tmp_path / "custom.json").read_text())) == sweep_config.total_tests

    def test_text_report_line_per_test(self, sweep_config):
        path = sweep_config.txt_path
        path.write_text("header\n")
        SweepRunner(sweep_config, FakeFioClient(), preallocate=False, text_report=path).run_sweep()

        lines = path.read_text().splitlines()
        assert lines[:2] == ["header", "RAW DATA"]
        raw_lines = [line for line in lines if " | read IOPS: " in line]
        assert [line.split(" | ")[0] for line in raw_lines] == [
            case.name for case in iter_test_cases(sweep_config)
        ]
        assert raw_lines[0].endswith("write IOPS: 5290.12 avg(ms): 0.310 p99.9(ms): 0.500")

    def test_text_report_keeps_finished_tests_on_abort(self, sweep_config):
        path = sweep_config.txt_path
        path.write_text("header\n")
        runner = SweepRunner(
            sweep_config, InterruptingFioClient(finished=2), preallocate=False, text_report=path
        )
        with pytest.raises(KeyboardInterrupt):
            runner.run_sweep()

        text = path.read_text()
        assert "randrw_70read_4k_qd1_jobs1 | read IOPS: 12345.678" in text
        assert "randrw_70read_4k_qd2_jobs1 | read IOPS: 12345.678" in text
        assert "randrw_50read_4k_qd1_jobs1" not in text


class TestScratchFile:
    """Tests for scratch file preparation and cleanup."""

    def test_prepare_uses_dd_with_fsync(self, tmp_path):
        with patch("disk_bench.runner.subprocess.run") as run:
            run.return_value.returncode = 0
            prepare_test_file(tmp_path / "f.dat", 2)
        cmd = run.call_args[0][0]
        assert cmd[0] == "dd"
        assert f"of={tmp_path / 'f.dat'}" in cmd
        assert "count=2048" in cmd
        assert "conv=fsync" in cmd

    def test_prepare_retries_without_fsync(self, tmp_path):
        with patch("disk_bench.runner.subprocess.run") as run, patch("disk_bench.runner.os.sync") as sync:
            run.return_value.returncode = 1
            run.return_value.stderr = "dd: fsync failed"
            prepare_test_file(tmp_path / "f.dat", 1)
        assert run.call_count == 2
        assert "conv=fsync" not in run.call_args_list[1][0][0]
        sync.assert_called_once()

    def test_cleanup_missing_file(self, tmp_path):
        with patch("disk_bench.runner.os.sync"):
            assert cleanup_test_file(tmp_path / "missing.dat")

    def test_cleanup_failure_is_not_fatal(self, tmp_path, caplog):
        path = tmp_path / "f.dat"
        with patch("disk_bench.runner.os.sync", side_effect=OSError("sync")), \
                patch.object(type(path), "unlink", side_effect=PermissionError("denied")):
            assert cleanup_test_file(path) is False
        assert "Could not remove" in caplog.text
