"""
elfcal -- ELF-Driven Calibration Toolkit
==========================================

Reads typed calibration values out of embedded-firmware ELF images and
edits the same symbols across any number of calibration images at once.

Capabilities:
    - ELF32/ELF64 header, section and program header parsing
    - Virtual-address to file-offset section index
    - Debug-section (DWARF) locator
    - Little-endian typed value codec
    - Multi-image calibration set with per-image bindings
    - Rich console output and a Click command-line interface

References:
    - TIS Committee. (1995). Tool Interface Standard (TIS) Executable
      and Linking Format (ELF) Specification, Version 1.2.
    - DWARF Debugging Information Format, Version 4. (2010).
"""

__version__ = "1.0.0"
__tool_name__ = "elfcal"
