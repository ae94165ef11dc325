import json

import pytest
from typer.testing import CliRunner

from toolloop.main import app

runner = CliRunner()


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "toolloop.toml"
    path.write_text(f'data_dir = "{(tmp_path / "data").as_posix()}"\n')
    return path


def test_tools_json_prints_enabled_schemas(config_file):
    result = runner.invoke(app, ["tools", "--json", "-c", str(config_file)])
    assert result.exit_code == 0
    names = [s["function"]["name"] for s in json.loads(result.stdout)]
    assert "sum" in names
    assert "create_todo_list" in names


def test_disabling_a_category_hides_its_tools(config_file):
    result = runner.invoke(app, ["categories", "disable", "arithmetic", "-c", str(config_file)])
    assert result.exit_code == 0
    result = runner.invoke(app, ["tools", "--json", "-c", str(config_file)])
    names = [s["function"]["name"] for s in json.loads(result.stdout)]
    assert "sum" not in names
    assert "create_todo_list" in names

    runner.invoke(app, ["categories", "toggle", "arithmetic", "-c", str(config_file)])
    result = runner.invoke(app, ["tools", "--json", "-c", str(config_file)])
    assert "sum" in [s["function"]["name"] for s in json.loads(result.stdout)]


def test_config_command_prints_json(config_file):
    result = runner.invoke(app, ["config", "-c", str(config_file)])
    assert result.exit_code == 0
    assert json.loads(result.stdout[result.stdout.index("{"):])["loop"]["max_iterations"] == 30
