"""
MCWrapper: runs a Velocity proxy in front of a vanilla Minecraft server as a
single service, with coordinated configuration and tied process lifetimes.
"""

__version__ = "1.0.0"
