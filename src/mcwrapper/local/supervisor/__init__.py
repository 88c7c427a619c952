"""
The Supervisor package.
Runs the Velocity proxy and the Minecraft server as a single service.

This package contains the Supervisor state machine and its helper modules,
which together handle secret generation, coordinated configuration, process
lifecycles and interrupt handling.
"""
from .supervisor import Supervisor, SupervisorPhase

__all__ = ['Supervisor', 'SupervisorPhase']
