from pathlib import Path

from typer.testing import CliRunner

from plan_kernel.cli import app

EXAMPLES = Path(__file__).resolve().parent.parent / "examples"

runner = CliRunner()


def _write_plan(tmp_path, speed_of_light_duration):
    plan = tmp_path / "plan.yaml"
    plan.write_text(
        "milestones:\n"
        "  m:\n"
        "    title: M\n"
        "    timelines:\n"
        "      expected: {start_month: 0, duration_months: 4, included: true}\n"
        "      aggressive: {start_month: 0, duration_months: 4, included: true}\n"
        f"      speedOfLight: {{start_month: 0, duration_months: {speed_of_light_duration}, included: true}}\n",
        encoding="utf-8",
    )
    doc = tmp_path / "content" / "milestone" / "m.mdx"
    doc.parent.mkdir(parents=True)
    doc.write_text("# M\n", encoding="utf-8")
    return plan


def test_cli_validate_success():
    r = runner.invoke(app, ["validate", str(EXAMPLES / "basic-plan.yaml")])
    assert r.exit_code == 0
    assert "OK: 34 nodes validated" in r.stdout


def test_cli_validate_reports_every_error():
    r = runner.invoke(app, ["validate", str(EXAMPLES / "invalid-plan.yaml")])
    assert r.exit_code == 1
    out = r.output
    assert "Validation failed:" in out
    assert "[smartbox] Capability must depend on at least one primitive" in out
    assert "[workerd-fork] Fork repository must specify an upstream repository" in out
    assert "[timeline-speedOfLight] Speed of Light timeline exceeds 12 months (ends at month 14)" in out


def test_cli_validate_unknown_reference():
    r = runner.invoke(app, ["validate", str(EXAMPLES / "invalid-unknown-ref.yaml")])
    assert r.exit_code == 1
    assert 'references unknown primitive "capability-scoped-exec"' in r.output


def test_cli_validate_missing_file():
    r = runner.invoke(app, ["validate", str(EXAMPLES / "nope.yaml")])
    assert r.exit_code == 1
    assert "E_FILE_NOT_FOUND" in r.output


def test_cli_validate_missing_content(tmp_path):
    plan = _write_plan(tmp_path, 6)
    r = runner.invoke(app, ["validate", str(plan), "--content-dir", str(tmp_path / "elsewhere")])
    assert r.exit_code == 1
    assert "[m] Missing content file: content/milestone/m.mdx" in r.output


def test_cli_validate_content_dir_defaults_next_to_definition(tmp_path):
    plan = _write_plan(tmp_path, 6)
    r = runner.invoke(app, ["validate", str(plan)])
    assert r.exit_code == 0
    assert "OK: 1 nodes validated (milestone=1)" in r.stdout


def test_cli_validate_config_overrides_speed_of_light_limit(tmp_path):
    plan = _write_plan(tmp_path, 14)
    r = runner.invoke(app, ["validate", str(plan)])
    assert r.exit_code == 1
    assert "exceeds 12 months" in r.output

    cfg = tmp_path / "plan-kernel.yaml"
    cfg.write_text("speed_of_light_months: 18\n", encoding="utf-8")
    r = runner.invoke(app, ["validate", str(plan), "--config", str(cfg)])
    assert r.exit_code == 0


def test_cli_validate_invalid_config(tmp_path):
    plan = _write_plan(tmp_path, 6)
    cfg = tmp_path / "plan-kernel.yaml"
    cfg.write_text("deadline: 3\n", encoding="utf-8")
    r = runner.invoke(app, ["validate", str(plan), "--config", str(cfg)])
    assert r.exit_code == 1
    assert "E_CONFIG_FILE_INVALID" in r.output


def test_cli_validate_unknown_format():
    r = runner.invoke(app, ["validate", str(EXAMPLES / "basic-plan.yaml"), "--format", "xml"])
    assert r.exit_code == 2
    assert "E_VALIDATE_UNKNOWN_FORMAT" in r.output
