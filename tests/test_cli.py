"""Tests for the click command-line interface."""

from __future__ import annotations

import json

import pytest
from click.testing import CliRunner

from elfcal import __version__
from elfcal.cli import cli

from elfbuild import CAL_DATA, calibration_elf


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def plain_elf(write_file):
    return write_file("plain.elf", calibration_elf())


@pytest.fixture
def image_file(write_file):
    return write_file("cal.bin", CAL_DATA)


def invoke(runner, *args):
    return runner.invoke(cli, [str(a) for a in args], obj={})


def test_version(runner):
    result = invoke(runner, "--version")
    assert result.exit_code == 0
    assert __version__ in result.output


class TestElfCommands:

    def test_info(self, runner, cal_elf_path):
        result = invoke(runner, "info", cal_elf_path)
        assert result.exit_code == 0, result.output
        assert ".data" in result.output
        assert "ARM" in result.output
        assert ".debug_info" in result.output

    def test_info_json(self, runner, plain_elf):
        result = invoke(runner, "--quiet", "info", plain_elf, "--json")
        assert result.exit_code == 0, result.output
        summary = json.loads(result.stdout)
        assert summary["class"] == "32-bit"
        assert summary["debug_info_present"] is False

    def test_sections(self, runner, plain_elf):
        result = invoke(runner, "sections", plain_elf)
        assert result.exit_code == 0, result.output
        assert "0x00001000" in result.output
        assert "0x00001010" in result.output

    def test_read_json(self, runner, plain_elf):
        result = invoke(runner, "--quiet", "read", plain_elf, "0x1008", "--type", "uint32", "--json")
        assert result.exit_code == 0, result.output
        payload = json.loads(result.stdout)
        assert payload["value"] == 1
        assert payload["file_offset"] == 0x208
        assert payload["section"] == ".data"
        assert payload["raw"] == "01000000"

    def test_read_console(self, runner, plain_elf):
        result = invoke(runner, "read", plain_elf, "0x100C", "-t", "sint16")
        assert result.exit_code == 0, result.output
        assert "-1" in result.output
        assert "ff ff" in result.output

    def test_read_unmapped_address(self, runner, plain_elf):
        result = invoke(runner, "read", plain_elf, "0x5000", "--type", "uint8")
        assert result.exit_code == 1
        assert "AddressNotMappedError" in result.output

    def test_not_an_elf(self, runner, write_file):
        path = write_file("junk.elf", bytes(128))
        result = invoke(runner, "info", path)
        assert result.exit_code == 1
        assert "BadMagicError" in result.output

    def test_bad_address_argument(self, runner, plain_elf):
        result = invoke(runner, "read", plain_elf, "zz", "--type", "uint8")
        assert result.exit_code == 2

    def test_unsupported_type_not_offered(self, runner, plain_elf):
        result = invoke(runner, "read", plain_elf, "0x1000", "--type", "struct")
        assert result.exit_code == 2

    def test_require_debug_info(self, runner, plain_elf, tmp_path):
        config = tmp_path / "strict.toml"
        config.write_text("[elf]\nrequire_debug_info = true\n", encoding="utf-8")
        result = invoke(runner, "--config", config, "info", plain_elf)
        assert result.exit_code == 1
        assert "no DWARF debug sections" in result.output


class TestImageCommands:

    def test_peek(self, runner, image_file):
        result = invoke(runner, "peek", image_file, "0x1008", "--type", "uint32", "--base", "0x1000")
        assert result.exit_code == 0, result.output
        assert "01 00 00 00" in result.output

    def test_peek_uses_configured_base(self, runner, image_file, tmp_path):
        config = tmp_path / "base.toml"
        config.write_text("[calibration]\nbase_address = 0x1000\n", encoding="utf-8")
        result = invoke(runner, "--config", config, "peek", image_file, "0x1004", "--type", "uint8")
        assert result.exit_code == 0, result.output
        assert "85" in result.output

    def test_peek_outside_image(self, runner, image_file):
        result = invoke(runner, "peek", image_file, "0x0E", "--type", "uint32")
        assert result.exit_code == 1
        assert "ReadBoundsError" in result.output

    def test_poke_in_place(self, runner, image_file):
        result = invoke(runner, "poke", image_file, "0x1008", "0x20", "--type", "uint32", "--base", "0x1000")
        assert result.exit_code == 0, result.output
        data = image_file.read_bytes()
        assert data[8:12] == b"\x20\x00\x00\x00"
        assert data[:8] == CAL_DATA[:8]

    def test_poke_to_output_file(self, runner, image_file, tmp_path):
        target = tmp_path / "tuned.bin"
        result = invoke(
            runner, "poke", image_file, "0x100E", "1", "--type", "enum",
            "--base", "0x1000", "--output", target,
        )
        assert result.exit_code == 0, result.output
        assert target.read_bytes()[14] == 1
        assert image_file.read_bytes() == CAL_DATA

    def test_poke_value_out_of_range(self, runner, image_file):
        result = invoke(runner, "poke", image_file, "0x1004", "300", "--type", "uint8", "--base", "0x1000")
        assert result.exit_code == 1
        assert "ValueEncodeError" in result.output
        assert image_file.read_bytes() == CAL_DATA

    def test_blank(self, runner, tmp_path):
        target = tmp_path / "erased.bin"
        result = invoke(runner, "blank", target, "32", "--base", "0x8000")
        assert result.exit_code == 0, result.output
        assert target.read_bytes() == b"\xFF" * 32

    def test_blank_custom_fill(self, runner, tmp_path):
        target = tmp_path / "zero.bin"
        result = invoke(runner, "blank", target, "4", "--fill", "0")
        assert result.exit_code == 0, result.output
        assert target.read_bytes() == b"\x00" * 4
