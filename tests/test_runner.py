"""Tests for the typer CLI commands that do not need a live stream."""

import pytest
from typer.testing import CliRunner

from ssewatch.runner import app, parse_headers
from ssewatch.shared.config import settings

runner = CliRunner()


@pytest.fixture(autouse=True)
def isolated_streams_file(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    monkeypatch.setattr(settings, "STREAMS_FILE", str(tmp_path / "streams.json"))


class TestStreamsCommands:
    def test_list_shows_builtins(self) -> None:
        result = runner.invoke(app, ["streams", "list"])

        assert result.exit_code == 0
        assert "Localhost\thttp://localhost:8787/" in result.output

    def test_add_then_remove(self) -> None:
        added = runner.invoke(app, ["streams", "add", "demo", "http://demo.test/"])
        listed = runner.invoke(app, ["streams", "list"])
        removed = runner.invoke(app, ["streams", "remove", "demo"])

        assert added.exit_code == 0
        assert "demo\thttp://demo.test/" in listed.output
        assert removed.exit_code == 0

    def test_remove_unknown_fails(self) -> None:
        result = runner.invoke(app, ["streams", "remove", "nope"])

        assert result.exit_code == 1


class TestParseHeaders:
    def test_name_value_pairs(self) -> None:
        assert parse_headers(["Authorization: Bearer x", "X-A:1"]) == {"Authorization": "Bearer x", "X-A": "1"}

    def test_rejects_missing_colon(self) -> None:
        import typer

        with pytest.raises(typer.BadParameter):
            parse_headers(["nocolon"])
