import enum
import time
import logging
from typing import Optional

from mcwrapper.local.config import WrapperSettings, effective_settings
from mcwrapper.local.errors import ConfigError, SpawnError, WrapperError
from mcwrapper.local.external import ProxyInstaller, ServerInstaller
from mcwrapper.local.reporting import print_network_report
from mcwrapper.local.supervisor.config_utils import ConfigSynchronizer, NetworkTopology, read_forwarding_secrets
from mcwrapper.local.supervisor.forwarding_secret import generate_secret
from mcwrapper.local.supervisor.process_utils import (
    ManagedProcess, ProcessLifecycle, ProcessMode, default_strategies, get_process_args
)
from mcwrapper.local.supervisor.shutdown import ShutdownCoordinator, ShutdownToken

log = logging.getLogger(__name__)

EXIT_FAILURE = 1


class SupervisorPhase(enum.Enum):
    IDLE = "Idle"
    INSTALLING = "Installing"
    CONFIGURING = "Configuring"
    STARTING_FRONTEND = "StartingFrontend"
    RUNNING_BACKEND = "RunningBackend"
    SHUTTING_DOWN = "ShuttingDown"
    TERMINATED = "Terminated"
    FAILED = "Failed"


class Supervisor:
    """
    Runs the Velocity proxy (frontend) and the vanilla server (backend) as one
    service.

    The backend runs in the foreground and its lifetime defines ours; the
    proxy runs in the background and is always torn down when the backend
    stops, whichever way it stops.
    """

    def __init__(
        self,
        settings: Optional[WrapperSettings] = None,
        server_installer: Optional[ServerInstaller] = None,
        proxy_installer: Optional[ProxyInstaller] = None,
        lifecycle: Optional[ProcessLifecycle] = None,
        token: Optional[ShutdownToken] = None,
        shutdown: Optional[ShutdownCoordinator] = None,
        enable_gui: Optional[bool] = None,
    ) -> None:
        self.settings = settings or effective_settings
        self.topology = NetworkTopology.from_settings(self.settings)
        self.server_installer = server_installer or ServerInstaller(
            self.settings.SERVER_DIR, self.settings.BUNDLE_DIR,
            server_jar_name=self.settings.SERVER_JAR_NAME,
            eula_file_name=self.settings.EULA_FILE_NAME,
            download_urls=self.settings.ARTIFACT_DOWNLOAD_URLS,
            download_timeout=self.settings.DOWNLOAD_TIMEOUT,
        )
        self.proxy_installer = proxy_installer or ProxyInstaller(
            self.settings.PROXY_DIR, self.settings.BUNDLE_DIR,
            velocity_jar_name=self.settings.VELOCITY_JAR_NAME,
            plugins_dir_name=self.settings.PLUGINS_DIR_NAME,
            plugin_jar_names=(self.settings.GEYSER_JAR_NAME, self.settings.FLOODGATE_JAR_NAME),
            download_urls=self.settings.ARTIFACT_DOWNLOAD_URLS,
            download_timeout=self.settings.DOWNLOAD_TIMEOUT,
        )
        self.lifecycle = lifecycle or ProcessLifecycle(default_strategies(self.settings.NATIVE_KILL_TIMEOUT))
        self.synchronizer = ConfigSynchronizer(self.settings)
        self.token = token or (shutdown.token if shutdown is not None else ShutdownToken())
        self.shutdown = shutdown or ShutdownCoordinator(self.token)
        self.enable_gui = enable_gui

        self.phase = SupervisorPhase.IDLE
        self.secret: Optional[str] = None
        self.frontend: Optional[ManagedProcess] = None
        self.backend: Optional[ManagedProcess] = None

    def _transition(self, phase: SupervisorPhase) -> None:
        log.debug(f"Phase: {self.phase.value} -> {phase.value}")
        self.phase = phase

    def _fail(self, error: Exception) -> int:
        log.critical(f"[{self.phase.value}] {error}")
        self._transition(SupervisorPhase.FAILED)
        return EXIT_FAILURE

    def run(self) -> int:
        """
        Drives the full install -> configure -> run -> shutdown sequence.

        :return: The process exit code for the wrapper.
        """
        start_time = time.time()
        log.info("=" * 20 + " Wrapper Starting " + "=" * 20)
        try:
            self._transition(SupervisorPhase.INSTALLING)
            self.install()

            self._transition(SupervisorPhase.CONFIGURING)
            self.configure()

            self._transition(SupervisorPhase.STARTING_FRONTEND)
            self.start_frontend()

            self._transition(SupervisorPhase.RUNNING_BACKEND)
            exit_code = self.run_backend()
        except WrapperError as e:
            return self._fail(e)
        except KeyboardInterrupt:
            # Only reachable before the interrupt hook replaced the default SIGINT handler
            log.warning(f"[{self.phase.value}] Interrupted before the backend was started.")
            self.lifecycle.terminate(self.backend)
            self.lifecycle.terminate(self.frontend)
            self._transition(SupervisorPhase.FAILED)
            return EXIT_FAILURE

        if self.phase is SupervisorPhase.FAILED:
            return exit_code

        self._transition(SupervisorPhase.TERMINATED)
        log.info(f"Wrapper stopped after {time.strftime('%H:%M:%S', time.gmtime(time.time() - start_time))} "
                 f"with exit code {exit_code}.")
        return exit_code

    def install(self) -> None:
        """Ensures the server and the proxy are installed."""
        log.info("--- Installing server and proxy ---")
        self.server_installer.ensure_installed()
        self.proxy_installer.ensure_installed()

    def configure(self) -> None:
        """Mints this run's secret and writes the coordinated configuration."""
        log.info("--- Writing coordinated configuration ---")
        self.secret = generate_secret(self.settings.FORWARDING_SECRET_LENGTH)
        log.info("Generated a new forwarding secret for this run.")
        self.synchronizer.render(self.secret, self.topology)

        try:
            secrets_on_disk = read_forwarding_secrets(self.synchronizer)
        except OSError as e:
            raise ConfigError(f"Failed to read back the forwarding secrets: {e}") from e
        if secrets_on_disk["proxy"] != self.secret or secrets_on_disk["backend"] != self.secret:
            raise ConfigError("Proxy and backend forwarding secrets disagree after configuration.")
        print_network_report(self.topology)

    def start_frontend(self) -> None:
        """Starts the proxy in the background."""
        command, cwd = get_process_args("velocity", self.settings)
        log.info(f"Starting proxy on {self.topology.public_endpoint}...")
        self.frontend = self.lifecycle.start(command, cwd, ProcessMode.BACKGROUND)

    def _on_interrupt(self) -> None:
        """Interrupt teardown: the backend may still be alive here, so kill its tree first."""
        log.warning("Interrupted. Terminating backend and proxy process trees...")
        self.lifecycle.terminate(self.backend)
        self._transition(SupervisorPhase.SHUTTING_DOWN)
        self.lifecycle.terminate(self.frontend)

    def run_backend(self) -> int:
        """
        Starts the server in the foreground and blocks until it exits.

        :return: The backend's exit code, or 1 if it crashed or was interrupted.
        """
        hook = self.shutdown.register_on_interrupt(self._on_interrupt)
        command, cwd = get_process_args("server", self.settings, enable_gui=self.enable_gui)
        try:
            self.backend = self.lifecycle.start(command, cwd, ProcessMode.FOREGROUND)
        except SpawnError as e:
            self.shutdown.unregister(hook)
            if self.token.fire():
                self.lifecycle.terminate(self.frontend)
            return self._fail(e)

        if self.token.interrupted:
            # The interrupt landed while the backend was being spawned and could not reach it
            log.warning("Interrupted during backend startup. Terminating backend process tree...")
            self.lifecycle.terminate(self.backend)

        try:
            exit_code = self.lifecycle.wait_for_exit(self.backend)
            log.info(f"Backend server exited with code: {exit_code}")
        except Exception as e:
            log.error(f"Backend server crashed: {e}", exc_info=True)
            exit_code = EXIT_FAILURE

        self.stop()
        self.shutdown.unregister(hook)

        if self.token.interrupted:
            log.warning(f"Wrapper was interrupted (signal {self.token.signum}).")
            return EXIT_FAILURE
        return exit_code

    def stop(self) -> None:
        """Normal-exit teardown. Skipped if the interrupt path already ran it."""
        if not self.token.fire():
            return
        self._transition(SupervisorPhase.SHUTTING_DOWN)
        log.info("Shutting down proxy...")
        self.lifecycle.terminate(self.frontend)
