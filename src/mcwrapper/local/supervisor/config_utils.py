import yaml
import logging
from pathlib import Path
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict

from mcwrapper.local.errors import ConfigError
from mcwrapper.local.server_properties import ServerProperties

if TYPE_CHECKING:
    from mcwrapper.local.config import WrapperSettings

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class NetworkTopology:
    """Fixed addressing shared by the proxy and the backend."""

    public_host: str
    public_port: int
    backend_host: str
    backend_port: int
    bedrock_port: int
    server_name: str = "lobby"

    @classmethod
    def from_settings(cls, settings: "WrapperSettings") -> "NetworkTopology":
        return cls(
            public_host=settings.PUBLIC_HOST,
            public_port=settings.PUBLIC_PORT,
            backend_host=settings.BACKEND_HOST,
            backend_port=settings.BACKEND_PORT,
            bedrock_port=settings.BEDROCK_PORT,
            server_name=settings.BACKEND_SERVER_NAME,
        )

    @property
    def public_endpoint(self) -> str:
        return f"{self.public_host}:{self.public_port}"

    @property
    def backend_endpoint(self) -> str:
        return f"{self.backend_host}:{self.backend_port}"

    def validate(self) -> None:
        """
        Checks the addressing the proxy architecture relies on.

        :raises ConfigError: If the backend could be reached without the proxy.
        """
        if self.public_port == self.backend_port:
            raise ConfigError(f"Public port and backend port must differ (both are {self.public_port}).")
        if self.backend_host not in ("127.0.0.1", "localhost", "::1"):
            raise ConfigError(f"Backend must bind to loopback, got '{self.backend_host}'.")


class ConfigSynchronizer:
    """
    Renders the proxy and backend configuration so both sides agree on the
    forwarding secret and the backend address.

    The proxy's `velocity.toml` is generated only once so operator edits
    survive restarts. The secret file and the backend's forwarding settings
    are rewritten on every run.
    """

    def __init__(self, settings: "WrapperSettings"):
        self.settings = settings
        self.server_dir = Path(settings.SERVER_DIR)
        self.proxy_dir = Path(settings.PROXY_DIR)

    @property
    def velocity_config_path(self) -> Path:
        return self.proxy_dir / self.settings.VELOCITY_CONFIG_NAME

    @property
    def secret_path(self) -> Path:
        return self.proxy_dir / self.settings.FORWARDING_SECRET_NAME

    @property
    def paper_config_path(self) -> Path:
        return self.server_dir / self.settings.PAPER_GLOBAL_CONFIG

    @property
    def server_properties_path(self) -> Path:
        return self.server_dir / self.settings.SERVER_PROPERTIES_NAME

    def render(self, secret: str, topology: NetworkTopology) -> None:
        """
        Writes every coordinated configuration artifact.

        :param secret: This run's forwarding secret.
        :param topology: The fixed network layout.
        :raises ConfigError: If any artifact cannot be written.
        """
        topology.validate()
        try:
            self.write_velocity_config(topology)
            self.write_forwarding_secret(secret)
            self.write_backend_forwarding(secret)
        except OSError as e:
            log.critical(f"Failed to write one or more configuration files: {e}", exc_info=True)
            raise ConfigError(f"Failed to write configuration: {e}") from e
        self.write_server_properties(topology)

    def write_velocity_config(self, topology: NetworkTopology) -> bool:
        """
        Generates `velocity.toml` if it does not exist yet.

        :return: True if the file was written, False if an existing one was kept.
        """
        if self.velocity_config_path.exists():
            log.info(f"Keeping existing proxy config '{self.velocity_config_path}'.")
            return False

        log.info(f"Generating proxy config '{self.velocity_config_path}'...")
        content = self.settings.VELOCITY_CONFIG_TEMPLATE.format(
            bind_host=topology.public_host,
            bind_port=topology.public_port,
            motd=self.settings.PROXY_MOTD,
            secret_file=self.settings.FORWARDING_SECRET_NAME,
            server_name=topology.server_name,
            backend_host=topology.backend_host,
            backend_port=topology.backend_port,
        )
        self.proxy_dir.mkdir(parents=True, exist_ok=True)
        self.velocity_config_path.write_text(content, encoding="utf-8")
        return True

    def write_forwarding_secret(self, secret: str) -> None:
        """Overwrites the proxy's secret file with this run's secret."""
        self.proxy_dir.mkdir(parents=True, exist_ok=True)
        self.secret_path.write_text(secret, encoding="utf-8")
        log.debug(f"Forwarding secret written to '{self.secret_path}'.")

    def _load_paper_config(self) -> Dict[str, Any]:
        if not self.paper_config_path.exists():
            return {}
        try:
            data = yaml.safe_load(self.paper_config_path.read_text(encoding="utf-8"))
        except yaml.YAMLError as e:
            log.warning(f"Discarding unparsable '{self.paper_config_path}': {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def write_backend_forwarding(self, secret: str) -> None:
        """
        Enables modern forwarding on the backend for this run's secret.

        Unrelated keys in `paper-global.yml` are kept. The velocity section is
        replaced, so a secret from a previous run never survives.
        """
        data = self._load_paper_config()
        proxies = data.get("proxies")
        if not isinstance(proxies, dict):
            proxies = data["proxies"] = {}
        proxies["velocity"] = {
            "enabled": True,
            "online-mode": True,
            "secret": secret,
        }

        self.paper_config_path.parent.mkdir(parents=True, exist_ok=True)
        with self.paper_config_path.open("w", encoding="utf-8") as f:
            yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
        log.debug(f"Backend forwarding config written to '{self.paper_config_path}'.")

    def write_server_properties(self, topology: NetworkTopology) -> ServerProperties:
        """
        Applies environment overrides to `server.properties`, then enforces the
        proxy architecture: private loopback port and authentication delegated
        to the proxy.
        """
        properties = ServerProperties(self.server_properties_path)
        properties.load()
        properties.apply_environment_variables()

        log.info("Enforcing proxy architecture settings in server.properties...")
        properties.set_property("server-port", topology.backend_port)
        properties.set_property("server-ip", topology.backend_host)
        properties.set_property("online-mode", "false")
        properties.save()
        return properties


def read_forwarding_secrets(synchronizer: ConfigSynchronizer) -> Dict[str, str]:
    """
    Reads back the secret each side will use.

    :return: {"proxy": ..., "backend": ...}; a side with no secret maps to "".
    """
    proxy_secret = ""
    if synchronizer.secret_path.exists():
        proxy_secret = synchronizer.secret_path.read_text(encoding="utf-8").strip()
    velocity = synchronizer._load_paper_config().get("proxies", {}).get("velocity", {})
    return {"proxy": proxy_secret, "backend": str(velocity.get("secret", ""))}
