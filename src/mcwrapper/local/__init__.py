"""
Local package for the MCWrapper application.

This package provides the effective wrapper configuration through the
`effective_settings` singleton, plus the installers, backend property store
and the process supervisor.
"""

from .config import effective_settings, WrapperSettings

__all__ = ["effective_settings", "WrapperSettings"]
