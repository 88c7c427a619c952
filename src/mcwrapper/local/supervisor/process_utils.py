import os
import sys
import enum
import shutil
import psutil
import logging
import subprocess
from pathlib import Path
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence, Tuple

from mcwrapper.local.errors import SpawnError

if TYPE_CHECKING:
    from mcwrapper.local.config import WrapperSettings

log = logging.getLogger(__name__)


class ProcessMode(enum.Enum):
    BACKGROUND = "background"
    FOREGROUND = "foreground"


@dataclass
class ManagedProcess:
    """A child process owned by exactly one ProcessLifecycle."""

    command: List[str]
    working_dir: Path
    mode: ProcessMode
    handle: Optional[subprocess.Popen] = field(default=None, repr=False)
    pid: Optional[int] = None
    exit_code: Optional[int] = None

    @property
    def started(self) -> bool:
        return self.handle is not None


#* --- Process Creation ---
def get_executable_path(base_path: Path) -> Path:
    """Returns the platform-specific full path for an executable."""
    return base_path.with_suffix(".exe") if sys.platform == "win32" else base_path


def resolve_java_executable() -> str:
    """
    Locates the java runtime used for both the server and the proxy.

    JAVA_HOME wins so that a bundled runtime is preferred; otherwise `java` is
    looked up on PATH. If neither exists the bare name is returned and the
    spawn fails with a SpawnError.
    """
    java_home = os.getenv("JAVA_HOME")
    if java_home:
        candidate = get_executable_path(Path(java_home) / "bin" / "java")
        if candidate.exists():
            return str(candidate)
        log.warning(f"JAVA_HOME is set but '{candidate}' does not exist. Falling back to PATH.")
    return shutil.which("java") or "java"


def get_process_args(process_name: str, settings: "WrapperSettings",
                     enable_gui: Optional[bool] = None) -> Tuple[List[str], Path]:
    """
    Returns the command-line arguments and CWD for a managed process.

    :param process_name: 'server' (backend) or 'velocity' (frontend).
    :param settings: The wrapper settings.
    :param enable_gui: Overrides MC_GUI for the server; when off, 'nogui' is passed.
    :raises ValueError: If the process name is unknown.
    """
    java = resolve_java_executable()
    if enable_gui is None:
        enable_gui = settings.SERVER_GUI_ENABLED

    if process_name == "server":
        args = [java, f"-Xmx{settings.SERVER_MEMORY}", f"-Xms{settings.SERVER_MEMORY}",
                "-jar", settings.SERVER_JAR_NAME]
        if not enable_gui:
            args.append("nogui")
        return args, Path(settings.SERVER_DIR)
    if process_name == "velocity":
        return [java, f"-Xmx{settings.PROXY_MEMORY}", "-jar", settings.VELOCITY_JAR_NAME], Path(settings.PROXY_DIR)

    raise ValueError(f"Unknown process name '{process_name}'. No arguments defined.")


def _get_popen_kwargs(mode: ProcessMode) -> Dict[str, Any]:
    """Returns Popen arguments for the given mode. Output always goes straight to our console."""
    kwargs: Dict[str, Any] = {"stdout": None, "stderr": None}
    if mode is ProcessMode.BACKGROUND:
        # The foreground server owns the console input (/stop, etc.)
        kwargs["stdin"] = subprocess.DEVNULL
    return kwargs


#* --- Termination Strategies ---
class TerminateStrategy:
    """One way of killing a process together with everything it spawned."""

    name = "base"

    def is_supported(self) -> bool:
        return True

    def kill_tree(self, process: ManagedProcess) -> None:
        raise NotImplementedError


class DescendantEnumeration(TerminateStrategy):
    """Enumerates descendants with psutil and force-kills them, then the process itself."""

    name = "descendant-enumeration"

    def kill_tree(self, process: ManagedProcess) -> None:
        try:
            parent = psutil.Process(process.pid)
            descendants = parent.children(recursive=True)
        except psutil.NoSuchProcess:
            log.debug(f"Process {process.pid} no longer exists, skipping descendant enumeration.")
            descendants, parent = [], None

        for child in descendants:
            try:
                log.info(f"Killing descendant PID {child.pid}")
                child.kill()
            except psutil.NoSuchProcess:
                continue
            except psutil.Error as e:
                log.warning(f"Failed to kill descendant PID {child.pid}: {e}")

        if parent is not None:
            try:
                parent.kill()
            except psutil.NoSuchProcess:
                pass
        elif process.handle is not None and process.handle.poll() is None:
            process.handle.kill()


class NativeTreeKill(TerminateStrategy):
    """
    Uses the OS tree-kill tool by PID. On Windows, handle-based enumeration can
    miss GUI children owned by another desktop session, so taskkill runs too.
    """

    name = "native-tree-kill"

    def __init__(self, timeout: int = 10):
        self.timeout = timeout

    def is_supported(self) -> bool:
        return sys.platform == "win32"

    def kill_tree(self, process: ManagedProcess) -> None:
        log.info(f"Attempting native tree kill for PID {process.pid}")
        subprocess.run(
            ["taskkill", "/F", "/T", "/PID", str(process.pid)],
            check=False, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL, timeout=self.timeout
        )


def default_strategies(native_kill_timeout: int = 10) -> List[TerminateStrategy]:
    return [DescendantEnumeration(), NativeTreeKill(timeout=native_kill_timeout)]


#* --- Lifecycle ---
class ProcessLifecycle:
    """
    Starts child processes, observes them, and kills whole process trees.

    Every supported strategy runs on terminate(): over-killing is preferred,
    since a surviving child keeps jars locked and breaks the next install.
    """

    def __init__(self, strategies: Optional[Sequence[TerminateStrategy]] = None):
        self.strategies = list(strategies) if strategies is not None else default_strategies()

    def start(self, command: Sequence[str], working_dir: Path, mode: ProcessMode) -> ManagedProcess:
        """
        Spawns a process. Returns as soon as the OS has created it.

        :raises SpawnError: If the executable is missing or not executable.
        """
        process = ManagedProcess(command=[str(c) for c in command], working_dir=Path(working_dir), mode=mode)
        log.info(f"Launching ({mode.value}): {' '.join(process.command)}")
        try:
            process.handle = subprocess.Popen(process.command, cwd=str(process.working_dir), **_get_popen_kwargs(mode))
        except OSError as e:
            log.critical(f"Failed to start '{process.command[0]}': {e}")
            raise SpawnError(process.command, e) from e

        process.pid = process.handle.pid
        log.info(f"Started process with PID: {process.pid}")
        return process

    def is_alive(self, process: ManagedProcess) -> bool:
        if not process.started or process.exit_code is not None:
            return False
        return process.handle.poll() is None

    def wait_for_exit(self, process: ManagedProcess) -> int:
        """
        Blocks until the process exits and returns its exit code.
        Calling it again returns the cached code.
        """
        if not process.started:
            raise ValueError("Cannot wait for a process that was never started.")
        if process.exit_code is None:
            process.exit_code = process.handle.wait()
        return process.exit_code

    def terminate(self, process: Optional[ManagedProcess]) -> None:
        """
        Best-effort kill of the process and all its descendants. Never raises
        and never waits for the process to exit; a no-op if it is not alive.
        """
        if process is None or not process.started:
            return
        if not self.is_alive(process):
            if process.handle.returncode is not None:
                log.info(f"Process {process.pid} already exited with code {process.handle.returncode}.")
            return

        log.info(f"Terminating process tree of PID {process.pid}...")
        for strategy in self.strategies:
            if not strategy.is_supported():
                continue
            try:
                strategy.kill_tree(process)
            except (psutil.Error, OSError, subprocess.SubprocessError) as e:
                log.warning(f"Termination strategy '{strategy.name}' failed for PID {process.pid}: {e}")
