"""
Console reports shown to the operator: how to connect, and what to do when
bundled artifacts are missing.
"""

import sys
from pathlib import Path
from typing import TYPE_CHECKING, Iterable

import mcwrapper.settings as default_settings

if TYPE_CHECKING:
    from mcwrapper.local.supervisor.config_utils import NetworkTopology

RULE = "-" * 79


def print_network_report(topology: "NetworkTopology") -> None:
    """Prints a table summarizing how Java and Bedrock clients reach the backend."""
    java_port = f"{topology.public_port} (TCP)"
    bedrock_port = f"{topology.bedrock_port} (UDP)"
    print("\n=== Network Configuration Report ===")
    print(RULE)
    print(f"| {'Feature':<19} | {'Java Edition (PC)':<24} | {'Bedrock Edition (Mobile/Console)':<32} |")
    print(f"|{'-' * 21}|{'-' * 26}|{'-' * 34}|")
    print(f"| {'Primary Port':<19} | {java_port:<24} | {bedrock_port:<32} |")
    print(f"| {'Initial Target':<19} | {'Velocity Proxy':<24} | {'Geyser (via Velocity)':<32} |")
    print(f"| {'Authentication':<19} | {'Mojang (Native)':<24} | {'Floodgate (No Java Account Req)':<32} |")
    print(f"| {'Backend Server':<19} | {'Vanilla (Internal)':<24} | {'Vanilla (Internal)':<32} |")
    print(RULE)
    print(f"Backend is listening on {topology.backend_endpoint} (Protected)")
    print(f"Proxy is listening on {topology.public_endpoint} (Public)")
    print("====================================\n")


def print_missing_artifacts_report(missing: Iterable[str], bundle_dir: Path) -> None:
    """Prints, to stderr, where each missing artifact comes from and where to put it."""
    err = sys.stderr
    print("\n=== Installation Required ===", file=err)
    print("The wrapper installs the server and proxy from its bundle directory,", file=err)
    print(f"but some artifacts were not found in '{bundle_dir}'.", file=err)
    print(RULE, file=err)
    for name in missing:
        title, url = default_settings.ARTIFACT_SOURCES.get(name, (name, None))
        placement = bundle_dir / name
        if name in (default_settings.GEYSER_JAR_NAME, default_settings.FLOODGATE_JAR_NAME):
            placement = bundle_dir / default_settings.PLUGINS_DIR_NAME / name
        print(f"[MISSING] {title}", file=err)
        if url:
            print(f"  > Download: {url}", file=err)
        print(f"  > Action:   Save it as '{placement}'", file=err)
        print("", file=err)
    print(RULE, file=err)
    print("After placing the files, start the wrapper again.", file=err)
    print("=============================\n", file=err)
