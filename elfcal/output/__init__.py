"""Rich console rendering of ELF and calibration results."""

from elfcal.output.console import CalibrationOutput, ElfOutput

__all__ = ["CalibrationOutput", "ElfOutput"]
