"""Tests for the typer CLI (no network: validation and argument handling only)."""

import pytest
import typer
from typer.testing import CliRunner

from reflex_directory_grid.cli import _build_app_code, _parse_filters, app
from reflex_directory_grid.resources import INTERACTION, PERSON

runner = CliRunner()


class TestImportCommand:

    def test_wrong_file_type_exits_with_error(self, tmp_path):
        path = tmp_path / "notes.txt"
        path.write_text("Name\nAnn\n")
        result = runner.invoke(app, ["import", str(path), "--api-url", "http://127.0.0.1:9"])
        assert result.exit_code == 1
        assert "valid spreadsheet" in result.output

    def test_missing_file_exits_with_error(self, tmp_path):
        result = runner.invoke(app, ["import", str(tmp_path / "absent.xlsx")])
        assert result.exit_code == 1
        assert "file not found" in result.output


class TestArguments:

    def test_unknown_resource(self):
        result = runner.invoke(app, ["export", "widgets"])
        assert result.exit_code == 1
        assert "unknown resource" in result.output

    def test_enum_filters_split_on_commas(self):
        filters = _parse_filters(INTERACTION, ["type=Meeting, Support", "notes=call back"])
        assert filters == {"type": frozenset({"Meeting", "Support"}), "notes": "call back"}

    def test_filter_without_value_rejected(self):
        with pytest.raises(typer.BadParameter):
            _parse_filters(PERSON, ["name"])

    def test_generated_app_targets_resource(self):
        code = _build_app_code(INTERACTION, "Log", server_side_import=False)
        assert 'dir_grid_resource: str = "interaction"' in code
        assert "directory_import_panel" not in code.split("def index")[1]

    def test_generated_person_app_has_import_panel(self):
        code = _build_app_code(PERSON, "People", server_side_import=True)
        assert "directory_import_panel(DirectoryState, server_side=True)," in code
