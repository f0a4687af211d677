"""
elfcal Configuration Management
================================

Centralized configuration for the elfcal toolkit using Python dataclasses
and TOML-based persistence.

Each TOML table maps onto one dataclass; missing keys fall back to the
dataclass defaults and unknown keys are ignored so that newer config
files keep working with older code.

References:
    - PEP 681 -- Data Class Transforms (2022).
    - TOML v1.0.0 Specification. https://toml.io/en/v1.0.0
"""

from __future__ import annotations

import sys
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Any, Optional

if sys.version_info >= (3, 11):
    import tomllib
else:
    try:
        import tomllib
    except ImportError:
        import tomli as tomllib  # type: ignore[no-redef]


# ---------------------------------------------------------------------------
# Default configuration file path relative to the project root
# ---------------------------------------------------------------------------
_DEFAULT_CONFIG_PATH: Path = Path(__file__).resolve().parent.parent / "elfcal.toml"


# ========================== Component Configs ==============================


@dataclass(frozen=False, slots=True)
class ElfConfig:
    """Configuration for the ELF loader and section index.

    Controls the size guard applied before mapping a file and how
    suspicious section layouts are reported.
    """

    max_file_size: int = 67_108_864  # 64 MiB
    warn_on_overlap: bool = True
    require_debug_info: bool = False


@dataclass(frozen=False, slots=True)
class CalibrationConfig:
    """Configuration for the multi-image calibration set.

    ``enum_label_depth`` is the number of first-child hops between an
    enumeration symbol and the head of its label chain.
    """

    enum_label_depth: int = 3
    base_address: int = 0
    fill_byte: int = 0xFF


# =========================== Global Settings ===============================


@dataclass(frozen=False, slots=True)
class GlobalConfig:
    """Global settings shared across all elfcal components."""

    log_level: str = "INFO"
    log_file: Optional[str] = None
    log_json: bool = False
    debug: bool = False
    version: str = "1.0.0"


# =========================== Master Config =================================


@dataclass(frozen=False, slots=True)
class ElfcalConfig:
    """Master configuration aggregating component and global settings.

    Usage:
        >>> config = ElfcalConfig.load()                  # from default path
        >>> config = ElfcalConfig.load("custom.toml")     # from custom path
        >>> config.calibration.enum_label_depth
        3
    """

    global_settings: GlobalConfig = field(default_factory=GlobalConfig)
    elf: ElfConfig = field(default_factory=ElfConfig)
    calibration: CalibrationConfig = field(default_factory=CalibrationConfig)

    # ------------------------------------------------------------------ #
    #  TOML Loading
    # ------------------------------------------------------------------ #

    @classmethod
    def load(cls, path: str | Path | None = None) -> ElfcalConfig:
        """Load configuration from a TOML file.

        If *path* is ``None`` the loader looks for ``elfcal.toml`` in the
        project root.  Missing keys gracefully fall back to dataclass
        defaults -- no ``KeyError`` is raised.

        Args:
            path: Filesystem path to a TOML configuration file.
                  Defaults to ``<project_root>/elfcal.toml``.

        Returns:
            A fully-populated :class:`ElfcalConfig` instance.

        Raises:
            FileNotFoundError: If the specified path does not exist
                *and* was explicitly provided by the caller.
        """
        config_path = Path(path) if path is not None else _DEFAULT_CONFIG_PATH

        if not config_path.exists():
            if path is not None:
                raise FileNotFoundError(
                    f"Configuration file not found: {config_path}"
                )
            # Fall back to pure defaults when the default file is absent.
            return cls()

        with open(config_path, "rb") as fh:
            raw: dict[str, Any] = tomllib.load(fh)

        return cls(
            global_settings=cls._build_section(GlobalConfig, raw.get("global", {})),
            elf=cls._build_section(ElfConfig, raw.get("elf", {})),
            calibration=cls._build_section(
                CalibrationConfig, raw.get("calibration", {})
            ),
        )

    # ------------------------------------------------------------------ #
    #  Serialisation helpers
    # ------------------------------------------------------------------ #

    def to_dict(self) -> dict[str, Any]:
        """Serialise the entire configuration tree to a plain dictionary."""
        return asdict(self)

    # ------------------------------------------------------------------ #
    #  Internal helpers
    # ------------------------------------------------------------------ #

    @staticmethod
    def _build_section(cls: type, data: dict[str, Any]) -> Any:
        """Instantiate a dataclass *cls* using only the keys it declares.

        Unknown keys in the TOML source are silently ignored so that
        forward-compatible config files do not break older code.
        """
        valid_keys = {f.name for f in cls.__dataclass_fields__.values()}  # type: ignore[attr-defined]
        filtered = {k: v for k, v in data.items() if k in valid_keys}
        return cls(**filtered)


# ========================= Module-level convenience ========================

def get_config(path: str | Path | None = None) -> ElfcalConfig:
    """Module-level convenience wrapper around :meth:`ElfcalConfig.load`.

    Caches the result so that repeated imports share one instance.
    """
    if not hasattr(get_config, "_cached") or path is not None:
        get_config._cached = ElfcalConfig.load(path)  # type: ignore[attr-defined]
    return get_config._cached  # type: ignore[attr-defined]
