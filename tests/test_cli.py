"""Unit tests for cli.py - the turso-reconcile command line."""

import json
import os

import pytest
import yaml
from click.testing import CliRunner
from unittest.mock import patch

from cli import cli, load_declarations
from errors import NotFoundError, TransportError
from config import reset_config
from resources import reset_registry

DECLARATIONS = {
    "resources": [
        {
            "type": "database",
            "name": "orders",
            "values": {"organization_name": "acme", "name": "orders", "group": "default"},
        }
    ]
}


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def workdir(tmp_path):
    declarations = tmp_path / "turso.yaml"
    declarations.write_text(yaml.dump(DECLARATIONS))
    return tmp_path


@pytest.fixture(autouse=True)
def env(mock_client):
    reset_registry()
    reset_config()
    with patch.dict(os.environ, {"TURSO_API_TOKEN": "test-token", "LOG_LEVEL": "ERROR"}):
        with patch("cli.build_client", return_value=mock_client):
            yield
    reset_registry()
    reset_config()


def _invoke(runner, workdir, *args, **kwargs):
    state = str(workdir / "state.json")
    return runner.invoke(cli, ["--state", state, *args], **kwargs)


def _read_state(workdir):
    return json.loads((workdir / "state.json").read_text())


class TestLoadDeclarations:
    """Tests for load_declarations."""

    def test_yaml(self, workdir):
        [decl] = load_declarations(str(workdir / "turso.yaml"))
        assert decl.address == "database.orders"

    def test_json(self, tmp_path):
        path = tmp_path / "turso.json"
        path.write_text(json.dumps(DECLARATIONS))
        assert len(load_declarations(str(path))) == 1

    def test_not_a_list(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("resources: nope\n")
        with pytest.raises(ValueError, match="'resources' list"):
            load_declarations(str(path))


class TestCommands:
    """Tests for the CLI commands."""

    def test_types(self, runner, workdir):
        result = _invoke(runner, workdir, "types")

        assert result.exit_code == 0
        assert "database_token" in result.output
        assert "organization_name/name" in result.output
        assert "Data sources: organization" in result.output

    def test_plan(self, runner, workdir, mock_client):
        result = _invoke(runner, workdir, "plan", str(workdir / "turso.yaml"))

        assert result.exit_code == 0
        assert "create" in result.output
        assert "database.orders" in result.output
        mock_client.create_database.assert_not_called()

    def test_apply(self, runner, workdir):
        result = _invoke(runner, workdir, "apply", str(workdir / "turso.yaml"), "--yes")

        assert result.exit_code == 0, result.output
        values = _read_state(workdir)["resources"]["database.orders"]["values"]
        assert values["db_id"] == "db-123"
        assert values["hostname"] == "orders-acme.turso.io"

    def test_apply_then_plan_has_no_changes(self, runner, workdir):
        _invoke(runner, workdir, "apply", str(workdir / "turso.yaml"), "--yes")

        result = _invoke(runner, workdir, "plan", str(workdir / "turso.yaml"))

        assert "No changes" in result.output

    def test_apply_aborted(self, runner, workdir, mock_client):
        result = _invoke(runner, workdir, "apply", str(workdir / "turso.yaml"), input="n\n")

        assert result.exit_code == 1
        assert not (workdir / "state.json").exists()
        mock_client.create_database.assert_not_called()

    def test_apply_error_exit_code(self, runner, workdir, mock_client):
        mock_client.create_database.side_effect = TransportError("quota exceeded", status=403)

        result = _invoke(runner, workdir, "apply", str(workdir / "turso.yaml"), "--yes")

        assert result.exit_code == 1
        assert "Client Error" in result.output
        assert _read_state(workdir)["resources"] == {}

    def test_missing_token(self, runner, workdir):
        with patch.dict(os.environ, {"TURSO_API_TOKEN": ""}):
            result = _invoke(runner, workdir, "plan", str(workdir / "turso.yaml"))

        assert result.exit_code == 1
        assert "TURSO_API_TOKEN" in result.output

    def test_import(self, runner, workdir):
        result = _invoke(runner, workdir, "import", "database", "orders", "acme/orders")

        assert result.exit_code == 0, result.output
        assert "Imported database.orders" in result.output
        assert "database.orders" in _read_state(workdir)["resources"]

    def test_import_bad_identifier(self, runner, workdir):
        result = _invoke(runner, workdir, "import", "database", "orders", "acme")

        assert result.exit_code == 1
        assert "Unexpected Import Identifier" in result.output
        assert not (workdir / "state.json").exists()

    def test_refresh_drops_missing(self, runner, workdir, mock_client):
        _invoke(runner, workdir, "apply", str(workdir / "turso.yaml"), "--yes")
        mock_client.get_database.side_effect = NotFoundError("database not found")

        result = _invoke(runner, workdir, "refresh")

        assert result.exit_code == 0
        assert "Removed database.orders" in result.output
        assert _read_state(workdir)["resources"] == {}

    def test_destroy(self, runner, workdir, mock_client):
        _invoke(runner, workdir, "apply", str(workdir / "turso.yaml"), "--yes")

        result = _invoke(runner, workdir, "destroy", "--yes")

        assert result.exit_code == 0
        assert _read_state(workdir)["resources"] == {}
        mock_client.delete_database.assert_awaited_once_with("acme", "orders")

    def test_show_masks_secrets(self, runner, workdir):
        _invoke(runner, workdir, "import", "api_token", "ci", "ci/eyJ.secret")

        result = _invoke(runner, workdir, "show", "-o", "json")

        assert result.exit_code == 0
        assert "eyJ.secret" not in result.output
        shown = json.loads(result.output)
        assert shown["api_token.ci"]["values"]["token"] == "(sensitive)"

    def test_show_empty(self, runner, workdir):
        result = _invoke(runner, workdir, "show")

        assert "No resources in state" in result.output

    def test_data(self, runner, workdir):
        result = _invoke(runner, workdir, "data", "organization", "-a", "slug=acme")

        assert result.exit_code == 0, result.output
        assert json.loads(result.output)["type"] == "team"

    def test_data_not_found(self, runner, workdir, mock_client):
        mock_client.get_organization.side_effect = NotFoundError("organization not found")

        result = _invoke(runner, workdir, "data", "organization", "-a", "slug=acme")

        assert result.exit_code == 1
        assert "Unable to read organization" in result.output
        assert '"severity": "error"' in result.output

    def test_data_unknown_source(self, runner, workdir):
        result = _invoke(runner, workdir, "data", "cluster", "-a", "name=x")

        assert result.exit_code == 2
        assert "Unknown data source" in result.output

    def test_data_bad_attribute(self, runner, workdir):
        result = _invoke(runner, workdir, "data", "organization", "-a", "slug")

        assert result.exit_code == 2
