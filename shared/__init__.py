"""
elfcal Shared Module
====================

Configuration, structured logging and console presentation shared by
every elfcal component.
"""

from shared.config import ElfcalConfig, get_config

__all__ = ["ElfcalConfig", "get_config"]
