"""
Tests for CLI commands — global options, config check, health, recipes.
"""

import json
import textwrap
from pathlib import Path

from click.testing import CliRunner

from recipeplane.main import cli


class TestCLIGlobal:
    """Tests for global CLI behavior."""

    def test_help(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "Recipe Control Plane" in result.output
        assert "recipes" in result.output

    def test_version(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output


class TestConfigCheck:
    def test_valid(self, recipes_yml: Path):
        runner = CliRunner()
        result = runner.invoke(cli, ["--config", str(recipes_yml), "config", "check"])
        assert result.exit_code == 0
        assert "valid" in result.output
        assert "Recipes:  2" in result.output

    def test_valid_json(self, recipes_yml: Path):
        runner = CliRunner()
        result = runner.invoke(cli, ["--config", str(recipes_yml), "config", "check", "--json"])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["valid"] is True
        assert data["recipes"] == ["enable-foo", "checklist"]

    def test_unknown_step_type(self, tmp_path: Path):
        config = tmp_path / "recipes.yml"
        config.write_text(textwrap.dedent("""\
            name: bad
            recipes:
              - id: r
                steps:
                  - type: reboot
        """))
        runner = CliRunner()
        result = runner.invoke(cli, ["--config", str(config), "config", "check"])
        assert result.exit_code == 1
        assert "Unknown step type" in result.output

    def test_missing_file(self, tmp_path: Path):
        runner = CliRunner()
        result = runner.invoke(cli, ["--config", str(tmp_path / "nope.yml"), "config", "check"])
        assert result.exit_code == 1


class TestHealthCommand:
    def test_health_json(self, recipes_yml: Path):
        runner = CliRunner()
        result = runner.invoke(cli, ["--config", str(recipes_yml), "health", "--json"])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["status"] == "healthy"

    def test_health_text(self, recipes_yml: Path):
        runner = CliRunner()
        result = runner.invoke(cli, ["--config", str(recipes_yml), "health"])
        assert result.exit_code == 0
        assert "HEALTHY" in result.output


class TestRecipesCommands:
    def test_list(self, recipes_yml: Path):
        runner = CliRunner()
        result = runner.invoke(cli, ["--config", str(recipes_yml), "recipes", "list"])
        assert result.exit_code == 0
        assert "enable-foo" in result.output
        assert "checklist" in result.output

    def test_list_json(self, recipes_yml: Path):
        runner = CliRunner()
        result = runner.invoke(cli, ["--config", str(recipes_yml), "recipes", "list", "--json"])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert [r["id"] for r in data] == ["checklist", "enable-foo"]
        assert len(data[1]["steps"]) == 3

    def test_show(self, recipes_yml: Path):
        runner = CliRunner()
        result = runner.invoke(cli, ["--config", str(recipes_yml), "recipes", "show", "enable-foo"])
        assert result.exit_code == 0
        assert "Install plugin foo" in result.output
        assert "Install foo and switch it on" in result.output

    def test_show_unknown(self, recipes_yml: Path):
        runner = CliRunner()
        result = runner.invoke(cli, ["--config", str(recipes_yml), "recipes", "show", "ghost"])
        assert result.exit_code == 1
        assert "not found" in result.output

    def test_install_and_uninstall(self, recipes_yml: Path):
        runner = CliRunner()
        state = recipes_yml.parent / ".state"

        result = runner.invoke(cli, ["--config", str(recipes_yml), "recipes", "install", "enable-foo"])
        assert result.exit_code == 0
        assert "✓ 0. Install plugin foo" in result.output
        assert "succeeded" in result.output
        settings = json.loads((state / "settings.json").read_text())
        assert settings["feature_toggles"] == {"foo-ui": True}
        assert settings["settings"]["foo"]["api_url"] == "https://foo.example.org"
        assert "foo" in json.loads((state / "plugins.json").read_text())

        result = runner.invoke(cli, ["--config", str(recipes_yml), "recipes", "uninstall", "enable-foo"])
        assert result.exit_code == 0
        settings = json.loads((state / "settings.json").read_text())
        assert settings == {"settings": {}, "feature_toggles": {}}
        assert json.loads((state / "plugins.json").read_text()) == {}

    def test_install_json(self, recipes_yml: Path):
        runner = CliRunner()
        result = runner.invoke(
            cli, ["--config", str(recipes_yml), "recipes", "install", "checklist", "--json"],
        )
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["status"] == "succeeded"
        assert data["operation"] == "install"

    def test_install_failure_exits_nonzero(self, tmp_path: Path):
        config = tmp_path / "recipes.yml"
        missing = (tmp_path / "missing.zip").as_uri()
        config.write_text(textwrap.dedent(f"""\
            name: failing
            recipes:
              - id: bad-download
                steps:
                  - type: install-plugin
                    settings:
                      plugin_id: bar
                      url: {missing}
                  - type: instruction
                    settings:
                      text: never reached
        """))
        runner = CliRunner()
        result = runner.invoke(cli, ["--quiet", "--config", str(config), "recipes", "install", "bad-download"])
        assert result.exit_code == 1
        assert "✗ 0." in result.output
        assert "⊘ 1." in result.output

    def test_apply_step(self, recipes_yml: Path):
        runner = CliRunner()
        result = runner.invoke(
            cli, ["--config", str(recipes_yml), "recipes", "apply-step", "checklist", "0", "--json"],
        )
        assert result.exit_code == 0
        assert json.loads(result.output)["status"]["code"] == "applied"

    def test_revert_step_out_of_range(self, recipes_yml: Path):
        runner = CliRunner()
        result = runner.invoke(
            cli, ["--config", str(recipes_yml), "recipes", "revert-step", "checklist", "3"],
        )
        assert result.exit_code == 1
        assert "out of range" in result.output

    def test_install_without_execution_record(self, recipes_yml: Path, monkeypatch):
        from recipeplane.core.engine.service import RecipeExecutionService

        monkeypatch.setattr(RecipeExecutionService, "wait", lambda self, recipe_id, timeout=None: None)
        runner = CliRunner()
        result = runner.invoke(cli, ["--config", str(recipes_yml), "recipes", "install", "checklist"])
        assert result.exit_code == 1
        assert "No execution recorded for 'checklist'" in result.output
