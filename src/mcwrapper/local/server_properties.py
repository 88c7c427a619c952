import os
import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterator, Tuple

from mcwrapper.local.errors import ConfigError

log = logging.getLogger(__name__)

HEADER_COMMENT = "Minecraft server properties"

# Environment variable -> (property key, default value)
ENVIRONMENT_PROPERTIES = {
    "MC_MOTD": ("motd", "A Minecraft Server"),
    "MC_MAX_PLAYERS": ("max-players", "10"),
    "MC_ONLINE_MODE": ("online-mode", "false"),
}


def _unescape(text: str) -> str:
    """Decodes the backslash escapes allowed in a .properties file."""
    out = []
    chars = iter(text)
    for ch in chars:
        if ch != "\\":
            out.append(ch)
            continue
        nxt = next(chars, "")
        if nxt == "u":
            code = "".join(next(chars, "") for _ in range(4))
            try:
                out.append(chr(int(code, 16)))
            except ValueError:
                out.append("u" + code)
        else:
            out.append({"t": "\t", "n": "\n", "r": "\r", "f": "\f"}.get(nxt, nxt))
    return "".join(out)


def _escape(text: str, is_key: bool = False) -> str:
    """Encodes a key or value the way java.util.Properties.store does."""
    out = []
    for index, ch in enumerate(text):
        if ch == "\\":
            out.append("\\\\")
        elif ch == "\n":
            out.append("\\n")
        elif ch == "\r":
            out.append("\\r")
        elif ch == "\t":
            out.append("\\t")
        elif ch == " " and (is_key or index == 0):
            out.append("\\ ")
        elif ch in "=:#!" and is_key:
            out.append("\\" + ch)
        else:
            out.append(ch)
    return "".join(out)


def _logical_lines(raw: str) -> Iterator[str]:
    """Joins continuation lines (ending with an odd number of backslashes)."""
    pending = ""
    for line in raw.splitlines():
        stripped = line.lstrip() if pending else line
        trailing = len(stripped) - len(stripped.rstrip("\\"))
        if trailing % 2 == 1:
            pending += stripped[:-1]
            continue
        yield pending + stripped
        pending = ""
    if pending:
        yield pending


def _split_entry(line: str) -> Tuple[str, str]:
    """Splits a logical line into its key and raw value."""
    index, escaped = 0, False
    while index < len(line):
        ch = line[index]
        if escaped:
            escaped = False
        elif ch == "\\":
            escaped = True
        elif ch in "=: \t\f":
            break
        index += 1
    key = line[:index]
    rest = line[index:].lstrip(" \t\f")
    if rest[:1] in ("=", ":"):
        rest = rest[1:].lstrip(" \t\f")
    return key, rest


def parse_properties(raw: str) -> Dict[str, str]:
    """
    Parses the content of a `.properties` file.

    :param raw: File content.
    :return: Ordered mapping of decoded keys to decoded values.
    """
    entries: Dict[str, str] = {}
    for line in _logical_lines(raw):
        content = line.lstrip()
        if not content or content[0] in "#!":
            continue
        key, value = _split_entry(content)
        entries[_unescape(key)] = _unescape(value)
    return entries


class ServerProperties:
    """
    Reads, modifies and saves the backend's `server.properties`.

    This is the bridge between environment variables (configuration injection)
    and the vanilla server's own settings file.
    """

    def __init__(self, path: Path):
        """
        :param path: Location of the `server.properties` file.
        """
        self.path = Path(path)
        self.properties: Dict[str, str] = {}

    def load(self) -> None:
        """
        Loads existing properties from disk, preserving the operator's settings.
        A missing or unreadable file leaves the store empty.
        """
        if not self.path.exists():
            return
        try:
            self.properties.update(parse_properties(self.path.read_text(encoding="utf-8")))
            log.debug(f"Loaded {len(self.properties)} properties from '{self.path}'.")
        except (OSError, UnicodeDecodeError) as e:
            log.error(f"Failed to load '{self.path}': {e}")

    def apply_environment_variables(self) -> None:
        """
        Injects MC_* environment variables into the properties.

        Supported: MC_MOTD, MC_MAX_PLAYERS, MC_ONLINE_MODE. The
        enforce-secure-profile flag is always forced off, otherwise Bedrock
        clients coming through Geyser are kicked.
        """
        log.info("Applying environment variables to server.properties:")
        for env_var, (key, default) in ENVIRONMENT_PROPERTIES.items():
            value = os.getenv(env_var, default)
            log.info(f"  - {key}: {value}")
            self.set_property(key, value)

        if os.getenv("MC_ENFORCE_SECURE_PROFILE", "false").lower() == "true":
            log.warning("MC_ENFORCE_SECURE_PROFILE=true is ignored; Bedrock clients require it to be off.")
        self.set_property("enforce-secure-profile", "false")

    def set_property(self, key: str, value) -> None:
        """Sets a value in memory. Nothing is written until save()."""
        if isinstance(value, bool):
            value = "true" if value else "false"
        self.properties[key] = str(value)

    def get_property(self, key: str, default: str = None) -> str:
        """Returns the value of `key`, or `default` if it is not set."""
        return self.properties.get(key, default)

    def save(self) -> None:
        """
        Writes the properties to disk.

        :raises ConfigError: If the file cannot be written.
        """
        lines = [f"#{HEADER_COMMENT}", f"#{datetime.now().strftime('%a %b %d %H:%M:%S %Y')}"]
        lines += [f"{_escape(key, is_key=True)}={_escape(value)}" for key, value in self.properties.items()]
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        except OSError as e:
            raise ConfigError(f"Failed to save '{self.path}': {e}") from e
        log.debug(f"Saved {len(self.properties)} properties to '{self.path}'.")
