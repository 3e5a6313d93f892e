"""
Tests for the command line interface.
"""

import json

import pytest
from typer.testing import CliRunner

from salonbook import __version__
from salonbook.cli.app import app

runner = CliRunner()


@pytest.fixture
def config_file(salon_data, tmp_path):
    (tmp_path / "salon.json").write_text(json.dumps(salon_data), encoding="utf-8")
    path = tmp_path / "config.yaml"
    path.write_text(
        'salon_name: "Salón de prueba"\n'
        'timezone: "America/Argentina/Buenos_Aires"\n'
        'data_file: "salon.json"\n',
        encoding="utf-8",
    )
    return path


class TestSlotsCommand:
    """salonbook slots"""

    def test_lists_slots_per_professional(self, config_file):
        result = runner.invoke(
            app,
            ["slots", "corte", "--date", "2024-11-25", "--now", "2024-11-25T08:00", "-c", str(config_file)],
        )

        assert result.exit_code == 0
        assert "Ana" in result.output
        assert "Bruno" in result.output
        assert "09:00" in result.output

    def test_single_professional(self, config_file):
        result = runner.invoke(
            app,
            ["slots", "corte", "-d", "2024-11-25", "-p", "bruno", "--now", "2024-11-25T08:00",
             "-c", str(config_file)],
        )

        assert result.exit_code == 0
        assert "Bruno" in result.output
        assert "Ana" not in result.output

    def test_day_without_slots(self, config_file):
        result = runner.invoke(
            app,
            ["slots", "corte", "--date", "2024-11-24", "--now", "2024-11-24T08:00", "-c", str(config_file)],
        )

        assert result.exit_code == 0
        assert "No hay horarios disponibles" in result.output

    def test_unknown_service(self, config_file):
        result = runner.invoke(app, ["slots", "nope", "-c", str(config_file)])

        assert result.exit_code == 1
        assert "Servicio no encontrado" in result.output

    def test_bad_date(self, config_file):
        result = runner.invoke(app, ["slots", "corte", "--date", "25/11/2024", "-c", str(config_file)])

        assert result.exit_code == 1
        assert "Fecha inválida" in result.output

    def test_inactive_service(self, config_file):
        result = runner.invoke(app, ["slots", "alisado", "--date", "2024-11-25", "-c", str(config_file)])

        assert result.exit_code == 1
        assert "no está disponible" in result.output

    def test_now_needs_a_date(self, config_file):
        result = runner.invoke(
            app,
            ["slots", "corte", "--date", "2024-11-25", "--now", "10:45", "-c", str(config_file)],
        )

        assert result.exit_code == 1
        assert "Fecha/hora inválida" in result.output

    def test_missing_config(self, tmp_path):
        result = runner.invoke(app, ["slots", "corte", "-c", str(tmp_path / "missing.yaml")])

        assert result.exit_code == 1
        assert "Config file not found" in result.output


class TestWeekCommand:
    """salonbook week"""

    def test_inactive_service(self, config_file):
        result = runner.invoke(app, ["week", "alisado", "-c", str(config_file)])

        assert result.exit_code == 1
        assert "no está disponible" in result.output


class TestBookCommand:
    """salonbook book"""

    def _book(self, config_file, phone="1166667777"):
        return runner.invoke(
            app,
            ["book", "corte", "ana", "2024-11-25T11:00", "--name", "Marta Ruiz", "--phone", phone,
             "-c", str(config_file)],
        )

    def test_books_and_saves(self, config_file, tmp_path):
        result = self._book(config_file)

        assert result.exit_code == 0
        assert "Turno reservado" in result.output
        assert "Pendiente" in result.output

        saved = json.loads((tmp_path / "salon.json").read_text(encoding="utf-8"))
        assert len(saved["appointments"]) == 3

    def test_taken_slot_is_rejected(self, config_file):
        self._book(config_file)

        result = self._book(config_file, phone="1199998888")

        assert result.exit_code == 1
        assert "ya no está disponible" in result.output

    def test_invalid_phone(self, config_file):
        result = self._book(config_file, phone="123")

        assert result.exit_code == 1
        assert "Teléfono inválido" in result.output


class TestCatalogCommands:
    """Listing professionals and services."""

    def test_list_professionals(self, config_file):
        result = runner.invoke(app, ["list-professionals", "-c", str(config_file)])

        assert result.exit_code == 0
        assert "Ana" in result.output
        assert "Carla" not in result.output

    def test_list_services(self, config_file):
        result = runner.invoke(app, ["list-services", "-c", str(config_file)])

        assert result.exit_code == 0
        assert "Corte" in result.output
        assert "Alisado" not in result.output


def test_version():
    result = runner.invoke(app, ["version"])

    assert result.exit_code == 0
    assert __version__ in result.output
