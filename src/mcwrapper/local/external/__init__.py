"""
This module initializes the installation system for the bundled server and
proxy artifacts.
"""

from .external import ArtifactInstaller, ProxyInstaller, ServerInstaller

__all__ = ["ArtifactInstaller", "ProxyInstaller", "ServerInstaller"]
