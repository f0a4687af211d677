"""
elfcal CLI
===========

Click-based command-line interface for the elfcal toolkit.  Provides
subcommands to inspect ELF images, resolve and decode symbol values, and
read or patch single values in flat calibration images.

Usage::

    python -m elfcal info firmware.elf
    python -m elfcal sections firmware.elf
    python -m elfcal read firmware.elf 0x1008 --type uint32
    python -m elfcal peek cal.bin 0x1008 --type uint32 --base 0x1000
    python -m elfcal poke cal.bin 0x1008 0x20 --type uint32 --base 0x1000
    python -m elfcal blank cal.bin 4096 --base 0x1000

References:
    - Click Documentation. https://click.palletsprojects.com/
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any, Optional

import click

from shared.config import ElfcalConfig
from shared.console import ElfcalConsole
from shared.logger import ElfcalLogger

from elfcal import __version__
from elfcal.core import codec
from elfcal.core.errors import ElfcalError
from elfcal.core.models import DataType
from elfcal.images import FlatImage, TypedAccess
from elfcal.output.console import ElfOutput
from elfcal.parsers.elf_loader import LoadedElf, parse


# ===================================================================== #
#  Parameter types
# ===================================================================== #

class _AddressType(click.ParamType):
    """Integer accepting decimal, ``0x`` hex, ``0o`` and ``0b`` literals."""

    name = "address"

    def convert(self, value: Any, param: Any, ctx: Any) -> int:
        if isinstance(value, int):
            return value
        try:
            number = int(str(value), 0)
        except ValueError:
            self.fail(f"{value!r} is not a valid address", param, ctx)
        if not 0 <= number <= 0xFFFFFFFF:
            self.fail(f"{value!r} is outside the 32-bit address space", param, ctx)
        return number


ADDRESS = _AddressType()

_TYPE_CHOICES = [dt.value for dt in DataType if codec.is_supported(dt)]


def _type_option(func: Any) -> Any:
    return click.option(
        "--type", "-t",
        "data_type",
        type=click.Choice(_TYPE_CHOICES),
        required=True,
        help="Data type of the value.",
    )(func)


def _base_option(func: Any) -> Any:
    return click.option(
        "--base", "-b",
        type=ADDRESS,
        default=None,
        help="Load address of the image (default from [calibration] base_address).",
    )(func)


# ===================================================================== #
#  CLI Group
# ===================================================================== #

@click.group()
@click.version_option(__version__, prog_name="elfcal")
@click.option(
    "--config", "-c",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="Path to elfcal configuration file (TOML).",
)
@click.option(
    "--quiet", "-q",
    is_flag=True,
    default=False,
    help="Suppress informational output.",
)
@click.option(
    "--verbose", "-v",
    is_flag=True,
    default=False,
    help="Enable debug logging.",
)
@click.pass_context
def cli(
    ctx: click.Context,
    config: Optional[str],
    quiet: bool,
    verbose: bool,
) -> None:
    """elfcal -- ELF-driven calibration toolkit.

    Inspect ELF images, decode symbol values, and patch flat
    calibration images.
    """
    ctx.ensure_object(dict)

    elfcal_config = ElfcalConfig.load(config) if config else ElfcalConfig()
    if verbose:
        elfcal_config.global_settings.debug = True
    elif quiet:
        elfcal_config.global_settings.log_level = "WARNING"

    console = ElfcalConsole(quiet=quiet)
    ctx.obj["config"] = elfcal_config
    ctx.obj["quiet"] = quiet
    ctx.obj["console"] = console
    ctx.obj["logger"] = ElfcalLogger.from_config("cli", elfcal_config)
    ctx.obj["display"] = ElfOutput(console)


def _fail(ctx: click.Context, exc: Exception) -> None:
    """Report *exc* through the console and exit with status 1."""
    console: ElfcalConsole = ctx.obj["console"]
    logger: ElfcalLogger = ctx.obj["logger"]
    logger.debug("Command failed: %s", exc, exc_info=True)
    console.error(str(exc))
    sys.exit(1)


def _load_elf(ctx: click.Context, path: str) -> LoadedElf:
    config: ElfcalConfig = ctx.obj["config"]
    elf = parse(
        path,
        config=config,
        logger=ElfcalLogger.from_config("loader", config),
    )
    if config.elf.require_debug_info and not elf.is_debug_info_present():
        elf.close()
        ctx.obj["console"].error(f"no DWARF debug sections in {path}")
        sys.exit(1)
    return elf


def _base(ctx: click.Context, base: Optional[int]) -> int:
    if base is not None:
        return base
    return ctx.obj["config"].calibration.base_address


# ===================================================================== #
#  ELF commands
# ===================================================================== #

@cli.command()
@click.argument("elf_file", metavar="ELF", type=click.Path(exists=True, dir_okay=False))
@click.option("--json", "json_output", is_flag=True, default=False,
              help="Print the summary as JSON.")
@click.pass_context
def info(ctx: click.Context, elf_file: str, json_output: bool) -> None:
    """Show the ELF header, debug-section presence and section table."""
    try:
        with _load_elf(ctx, elf_file) as elf:
            if json_output:
                click.echo(json.dumps(elf.summary(), indent=2, default=str))
            else:
                ctx.obj["display"].display(elf)
    except ElfcalError as exc:
        _fail(ctx, exc)


@cli.command()
@click.argument("elf_file", metavar="ELF", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def sections(ctx: click.Context, elf_file: str) -> None:
    """List the section index: VA range, file offset and name."""
    try:
        with _load_elf(ctx, elf_file) as elf:
            ctx.obj["display"].display_section_index(elf.section_index)
    except ElfcalError as exc:
        _fail(ctx, exc)


@cli.command()
@click.argument("elf_file", metavar="ELF", type=click.Path(exists=True, dir_okay=False))
@click.argument("address", type=ADDRESS)
@_type_option
@click.option("--json", "json_output", is_flag=True, default=False,
              help="Print the value as JSON.")
@click.pass_context
def read(
    ctx: click.Context,
    elf_file: str,
    address: int,
    data_type: str,
    json_output: bool,
) -> None:
    """Resolve ADDRESS in the ELF and decode the value stored there."""
    dt = DataType(data_type)
    try:
        with _load_elf(ctx, elf_file) as elf:
            raw = elf.read_bytes(address, codec.width(dt))
            entry = elf.find_section(address)
    except ElfcalError as exc:
        _fail(ctx, exc)
        return
    value = codec.decode(raw, dt)

    if json_output:
        click.echo(json.dumps(
            {
                "address": address,
                "type": dt.value,
                "section": entry.name if entry else "",
                "file_offset": entry.to_file_offset(address) if entry else None,
                "raw": raw.hex(),
                "value": value,
            },
            indent=2,
        ))
        return
    ctx.obj["display"].display_value(
        address, dt, raw, value, source=entry.name if entry else ""
    )


# ===================================================================== #
#  Flat image commands
# ===================================================================== #

@cli.command()
@click.argument("image_file", metavar="IMAGE", type=click.Path(exists=True, dir_okay=False))
@click.argument("address", type=ADDRESS)
@_type_option
@_base_option
@click.pass_context
def peek(
    ctx: click.Context,
    image_file: str,
    address: int,
    data_type: str,
    base: Optional[int],
) -> None:
    """Decode the value at ADDRESS in a flat calibration image."""
    dt = DataType(data_type)
    try:
        image = FlatImage.from_file(image_file, _base(ctx, base))
        raw = image.read(address, codec.width(dt))
    except ElfcalError as exc:
        _fail(ctx, exc)
        return
    ctx.obj["display"].display_value(
        address, dt, raw, codec.decode(raw, dt), source=Path(image_file).name
    )


@cli.command()
@click.argument("image_file", metavar="IMAGE", type=click.Path(exists=True, dir_okay=False))
@click.argument("address", type=ADDRESS)
@click.argument("value")
@_type_option
@_base_option
@click.option(
    "--output", "-o",
    "output_file",
    type=click.Path(dir_okay=False),
    default=None,
    help="Write the patched image here instead of in place.",
)
@click.pass_context
def poke(
    ctx: click.Context,
    image_file: str,
    address: int,
    value: str,
    data_type: str,
    base: Optional[int],
    output_file: Optional[str],
) -> None:
    """Encode VALUE and store it at ADDRESS in a flat calibration image."""
    dt = DataType(data_type)
    logger: ElfcalLogger = ctx.obj["logger"]
    target = output_file or image_file
    try:
        image = FlatImage.from_file(image_file, _base(ctx, base))
        access = TypedAccess(image)
        access.write_value(address, codec.parse_text(value, dt), dt)
        written = access.read_value(address, dt)
        image.save(target)
    except ElfcalError as exc:
        _fail(ctx, exc)
        return
    logger.info("Patched 0x%08X in %s", address, target, type=dt.value)
    ctx.obj["console"].success(
        f"0x{address:08X} = {codec.format_value(written, dt)} ({dt.value}) "
        f"saved to {target}"
    )


@cli.command()
@click.argument("image_file", metavar="IMAGE", type=click.Path(dir_okay=False))
@click.argument("size", type=click.IntRange(min=1))
@_base_option
@click.option("--fill", type=click.IntRange(0, 0xFF), default=None,
              help="Fill byte (default from [calibration] fill_byte).")
@click.pass_context
def blank(
    ctx: click.Context,
    image_file: str,
    size: int,
    base: Optional[int],
    fill: Optional[int],
) -> None:
    """Create an erased flat image of SIZE bytes."""
    if fill is None:
        fill = ctx.obj["config"].calibration.fill_byte
    image = FlatImage.blank(size, _base(ctx, base), fill)
    image.save(image_file)
    ctx.obj["console"].success(
        f"{image_file}: {size} bytes at 0x{image.base_address:08X} "
        f"filled with 0x{fill:02X}"
    )


# ===================================================================== #
#  Entry Point
# ===================================================================== #

def main() -> None:
    """Main entry point for the elfcal CLI."""
    cli(obj={})


if __name__ == "__main__":
    main()
