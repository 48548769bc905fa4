import yaml
from typer.testing import CliRunner

from layr.cli.entrypoint import app
from layr.cli.show import format_value, render_blueprints_table_data, render_ranking_table_data, score_color

runner = CliRunner()


def test_requires_an_option():
    result = runner.invoke(app, ["show"])
    assert result.exit_code == 2


def test_show_blueprints():
    result = runner.invoke(app, ["show", "--blueprints"])

    assert result.exit_code == 0, result.output
    assert "BLUEPRINT CATALOG" in result.output
    for blueprint_id in ("saas-starter", "form-to-db", "community-mini", "marketplace-lite", "static-landing"):
        assert blueprint_id in result.output


def test_show_settings_masks_credentials(tmp_path):
    settings_file = tmp_path / "custom.yaml"
    settings_file.write_text(yaml.safe_dump({"vercel_token": "tok_super_secret", "max_retries": 4}))

    result = runner.invoke(app, ["--settings", str(settings_file), "show", "--settings"])

    assert result.exit_code == 0, result.output
    assert "LAYR SETTINGS" in result.output
    assert "tok_super_secret" not in result.output
    assert "max_retries" in result.output


def test_show_missing_settings_file(tmp_path):
    result = runner.invoke(app, ["--settings", str(tmp_path / "missing.yaml"), "show", "--settings"])
    assert result.exit_code == 2


def test_show_all():
    result = runner.invoke(app, ["show", "--all"])

    assert result.exit_code == 0, result.output
    assert "BLUEPRINT CATALOG" in result.output
    assert "LAYR SETTINGS" in result.output


def test_rank(intent_file):
    result = runner.invoke(app, ["show", "--rank", str(intent_file)])

    assert result.exit_code == 0, result.output
    assert "BLUEPRINT RANKING: bill-buddy" in result.output
    assert "60%" in result.output


def test_classify(intent_file):
    result = runner.invoke(app, ["show", "--classify", str(intent_file)])

    assert result.exit_code == 0, result.output
    assert "SaaS Starter" in result.output
    assert "saas-starter" in result.output


def test_classify_missing_file(tmp_path):
    result = runner.invoke(app, ["show", "--classify", str(tmp_path / "nope.yaml")])
    assert result.exit_code == 2


def test_render_blueprints_table_data():
    rows = render_blueprints_table_data()
    assert len(rows) == 5
    assert all(len(row) == 4 for row in rows)


def test_render_ranking_table_data(saas_intent):
    rows = render_ranking_table_data(saas_intent)

    assert "saas-starter" in rows[0][0]
    assert "60%" in rows[0][1]
    assert rows[0][2] == "auth, crud, payments"


def test_score_color():
    assert score_color(80) == "green"
    assert score_color(40) == "yellow"
    assert score_color(0) == "red"


def test_format_value_for_dicts():
    assert "vercel" in format_value({"vercel": True})
    assert "-" in format_value({})
