"""
Tests for CSV run logging and the run plots built from it.
"""

import csv

import matplotlib

matplotlib.use("Agg")

import pytest

from conftest import StubSolver, telemetry_data
from mpc_control.controller import MPCController
from mpc_control.data_collector import (
    COMMANDS_HEADER,
    SOLVER_HEADER,
    TELEMETRY_HEADER,
    DataCollector,
)
from mpc_control.exceptions import OptimizationFailed
from mpc_control.plot_results import find_latest_run
from mpc_control.plot_styles import load_csv_to_dict
from mpc_control.telemetry import parse_telemetry
from mpc_control.visualization import plot_run_summary


def read_rows(path):
    with open(path, newline="") as f:
        return list(csv.reader(f))


def test_setup_writes_headers(tmp_path):
    with DataCollector(run_dir=str(tmp_path / "run_a")) as collector:
        pass

    assert read_rows(collector.telemetry_output_path) == [TELEMETRY_HEADER]
    assert read_rows(collector.commands_output_path) == [COMMANDS_HEADER]
    assert read_rows(collector.solver_output_path) == [SOLVER_HEADER]


def test_default_run_dir_is_timestamped(tmp_path, monkeypatch):
    monkeypatch.delenv("RUN_DIR", raising=False)

    collector = DataCollector(output_dir=str(tmp_path))

    assert collector.run_dir.parent == tmp_path / "results"
    assert collector.run_dir.name.startswith("run_")
    assert collector.run_dir.is_dir()


def test_run_dir_from_environment(tmp_path, monkeypatch):
    monkeypatch.setenv("RUN_DIR", str(tmp_path / "from_env"))

    collector = DataCollector(output_dir=str(tmp_path))

    assert collector.run_dir == tmp_path / "from_env"


def test_output_dir_must_be_directory(tmp_path):
    not_a_dir = tmp_path / "file.txt"
    not_a_dir.write_text("x")

    with pytest.raises(ValueError):
        DataCollector(output_dir=str(not_a_dir))


def test_logging_before_setup_is_a_no_op(tmp_path):
    collector = DataCollector(run_dir=str(tmp_path / "run_b"))

    collector.log_solver(1.0, success=True)

    assert not collector.solver_output_path.exists()


def test_controller_logs_every_cycle(tmp_path, params):
    stub = StubSolver()
    with DataCollector(run_dir=str(tmp_path / "run_c")) as collector:
        controller = MPCController(params=params, solver=stub, data_collector=collector)
        controller.process(parse_telemetry(telemetry_data()), timestamp=10.0)
        stub.fail_with = OptimizationFailed("no luck", status="Maximum_Iterations_Exceeded")
        controller.process(parse_telemetry(telemetry_data()), timestamp=10.1)

    telemetry = read_rows(collector.telemetry_output_path)
    commands = read_rows(collector.commands_output_path)
    solver = read_rows(collector.solver_output_path)

    assert len(telemetry) == 3
    assert [row[1] for row in commands[1:]] == ["ok", "fallback"]
    assert solver[1][1] == "1"
    assert solver[2][1:3] == ["0", "Maximum_Iterations_Exceeded"]
    assert solver[2][3] == ""


def test_run_summary_plots_logged_run(tmp_path, params):
    results = tmp_path / "results"
    run_dir = results / "run_20260101_120000"
    stub = StubSolver()
    with DataCollector(run_dir=str(run_dir)) as collector:
        controller = MPCController(params=params, solver=stub, data_collector=collector)
        for i in range(5):
            controller.process(parse_telemetry(telemetry_data(speed=20.0 + i)), timestamp=float(i))
        stub.fail_with = OptimizationFailed("no luck")
        controller.process(parse_telemetry(telemetry_data()), timestamp=5.0)

    assert find_latest_run(results) == run_dir

    solver = load_csv_to_dict(run_dir / "solver.csv")
    assert solver["success"].tolist() == [1.0] * 5 + [0.0]

    plot_run_summary(run_dir, save_plots=True, show_plots=False)

    assert (run_dir / "tracking_errors.png").exists()
    assert (run_dir / "commands.png").exists()


def test_find_latest_run_without_runs(tmp_path):
    with pytest.raises(FileNotFoundError):
        find_latest_run(tmp_path)
