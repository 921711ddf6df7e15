import json
import subprocess
import sys
from pathlib import Path

from caip.__version__ import __version__
from caip.cli import main, run_analysis


def run_cli(args):
    return subprocess.run(
        [sys.executable, "-m", "caip.cli"] + args,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
    )


def test_cli_help():
    result = run_cli(["--help"])
    assert result.returncode == 0


def test_cli_version():
    result = run_cli(["--version"])
    assert result.returncode == 0
    assert __version__ in result.stdout


def test_cli_triage_writes_json(triage_csv, tmp_path):
    out = tmp_path / "runs"
    result = run_cli(["triage", str(triage_csv), "--list-size", "2000", "--output", str(out)])

    assert result.returncode == 0, result.stderr
    written = list(out.glob("*/triage_results.json"))
    assert len(written) == 1

    payload = json.loads(written[0].read_text())
    assert payload["domain"] == "triage"
    assert payload["kpis"]["total_requests"] == 100


def test_cli_rejects_foreign_file(tmp_path):
    path = tmp_path / "sales.csv"
    path.write_text("order_id,sales\n1,10\n")

    assert main(["triage", str(path), "--output", str(tmp_path / "runs")]) == 1


def test_run_analysis_followup(tmp_path, followup_csv_text):
    result = run_analysis("followup", followup_csv_text, output_dir=str(tmp_path))

    assert result["result"]["kpis"]["overall"]["total"] == 3
    assert json.loads(Path(result["result_path"]).read_text())["version"] == __version__
    assert "Parsed 3 appointments" in (Path(result["run_dir"]) / "run.log").read_text()
