"""Tests for starting, observing and killing child process trees."""

import sys
import time
from unittest import mock

import psutil
import pytest

from mcwrapper.local.errors import SpawnError
from mcwrapper.local.supervisor.process_utils import (
    DescendantEnumeration,
    ManagedProcess,
    NativeTreeKill,
    ProcessLifecycle,
    ProcessMode,
    TerminateStrategy,
    default_strategies,
    get_process_args,
    resolve_java_executable,
)

SLEEPER = "import time; time.sleep(60)"

# Spawns a grandchild, records its PID and then sleeps.
PARENT_WITH_GRANDCHILD = """
import subprocess, sys, time
child = subprocess.Popen([sys.executable, "-c", "import time; time.sleep(60)"])
with open(sys.argv[1], "w") as f:
    f.write(str(child.pid))
time.sleep(60)
"""


def _wait_until(predicate, timeout=10.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.05)
    return predicate()


def _is_gone(pid):
    try:
        return psutil.Process(pid).status() == psutil.STATUS_ZOMBIE
    except psutil.NoSuchProcess:
        return True


def _fake_running_process(tmp_path):
    handle = mock.Mock()
    handle.poll.return_value = None
    return ManagedProcess(command=["java"], working_dir=tmp_path, mode=ProcessMode.BACKGROUND, handle=handle, pid=4242)


@pytest.fixture
def lifecycle():
    return ProcessLifecycle()


class TestProcessArgs:
    """Test the command lines of the server and the proxy."""

    def test_server_headless(self, settings):
        args, cwd = get_process_args("server", settings, enable_gui=False)
        assert args[1:] == ["-Xmx1024M", "-Xms1024M", "-jar", "server.jar", "nogui"]
        assert cwd == settings.SERVER_DIR

    def test_server_with_gui(self, settings):
        args, _ = get_process_args("server", settings, enable_gui=True)
        assert "nogui" not in args

    def test_server_gui_from_settings(self, settings):
        settings.SERVER_GUI_ENABLED = False
        args, _ = get_process_args("server", settings)
        assert args[-1] == "nogui"

    def test_velocity(self, settings):
        args, cwd = get_process_args("velocity", settings)
        assert args[1:] == ["-Xmx512M", "-jar", "velocity.jar"]
        assert cwd == settings.PROXY_DIR

    def test_unknown_process(self, settings):
        with pytest.raises(ValueError):
            get_process_args("bungee", settings)

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX executable layout")
    def test_java_home_is_preferred(self, tmp_path, monkeypatch):
        java = tmp_path / "jdk" / "bin" / "java"
        java.parent.mkdir(parents=True)
        java.write_text("", encoding="utf-8")
        monkeypatch.setenv("JAVA_HOME", str(tmp_path / "jdk"))
        assert resolve_java_executable() == str(java)

    def test_missing_java_home_falls_back(self, tmp_path, monkeypatch):
        monkeypatch.setenv("JAVA_HOME", str(tmp_path / "nowhere"))
        monkeypatch.setattr("mcwrapper.local.supervisor.process_utils.shutil.which", lambda name: None)
        assert resolve_java_executable() == "java"


class TestProcessLifecycle:
    """Test the lifecycle of real child processes."""

    def test_start_and_wait(self, lifecycle, tmp_path):
        process = lifecycle.start([sys.executable, "-c", "import sys; sys.exit(3)"], tmp_path, ProcessMode.FOREGROUND)

        assert process.pid == process.handle.pid
        assert lifecycle.wait_for_exit(process) == 3
        assert not lifecycle.is_alive(process)

    def test_wait_for_exit_is_cached(self, lifecycle, tmp_path):
        """A second wait returns the first result without touching the OS handle."""
        process = lifecycle.start([sys.executable, "-c", "pass"], tmp_path, ProcessMode.BACKGROUND)
        assert lifecycle.wait_for_exit(process) == 0

        process.handle.wait = mock.Mock(side_effect=AssertionError("waited twice"))
        assert lifecycle.wait_for_exit(process) == 0

    def test_wait_for_never_started(self, lifecycle, tmp_path):
        process = ManagedProcess(command=["java"], working_dir=tmp_path, mode=ProcessMode.FOREGROUND)
        with pytest.raises(ValueError):
            lifecycle.wait_for_exit(process)

    def test_missing_executable(self, lifecycle, tmp_path):
        missing = tmp_path / "no-such-java"
        with pytest.raises(SpawnError) as excinfo:
            lifecycle.start([str(missing), "-jar", "server.jar"], tmp_path, ProcessMode.FOREGROUND)
        assert excinfo.value.command[0] == str(missing)
        assert isinstance(excinfo.value.cause, OSError)

    def test_terminate_running_process(self, lifecycle, tmp_path):
        process = lifecycle.start([sys.executable, "-c", SLEEPER], tmp_path, ProcessMode.BACKGROUND)
        assert lifecycle.is_alive(process)

        lifecycle.terminate(process)

        process.handle.wait(timeout=10)
        assert not lifecycle.is_alive(process)

    @pytest.mark.skipif(sys.platform == "win32", reason="uses POSIX process semantics")
    def test_terminate_kills_grandchildren(self, lifecycle, tmp_path):
        pid_file = tmp_path / "grandchild.pid"
        process = lifecycle.start([sys.executable, "-c", PARENT_WITH_GRANDCHILD, str(pid_file)],
                                  tmp_path, ProcessMode.BACKGROUND)
        try:
            assert _wait_until(lambda: pid_file.exists() and pid_file.read_text().strip())
            grandchild_pid = int(pid_file.read_text())
            assert not _is_gone(grandchild_pid)

            lifecycle.terminate(process)

            process.handle.wait(timeout=10)
            assert _wait_until(lambda: _is_gone(grandchild_pid))
        finally:
            if process.handle.poll() is None:
                process.handle.kill()

    def test_terminate_none_or_unstarted_is_noop(self, tmp_path):
        strategy = mock.Mock(spec=TerminateStrategy)
        lifecycle = ProcessLifecycle([strategy])

        lifecycle.terminate(None)
        lifecycle.terminate(ManagedProcess(command=["java"], working_dir=tmp_path, mode=ProcessMode.BACKGROUND))

        strategy.kill_tree.assert_not_called()

    def test_terminate_exited_process_is_noop(self, tmp_path):
        strategy = mock.Mock(spec=TerminateStrategy)
        lifecycle = ProcessLifecycle([strategy])
        process = lifecycle.start([sys.executable, "-c", "pass"], tmp_path, ProcessMode.BACKGROUND)
        lifecycle.wait_for_exit(process)

        lifecycle.terminate(process)
        lifecycle.terminate(process)

        strategy.kill_tree.assert_not_called()


class TestTerminateStrategies:
    """Test how termination strategies are composed."""

    def test_default_strategies(self):
        strategies = default_strategies(native_kill_timeout=5)
        assert [s.name for s in strategies] == ["descendant-enumeration", "native-tree-kill"]
        assert strategies[1].timeout == 5

    def test_all_supported_strategies_run(self, tmp_path):
        first, second, unsupported = (mock.Mock(spec=TerminateStrategy) for _ in range(3))
        first.is_supported.return_value = True
        second.is_supported.return_value = True
        unsupported.is_supported.return_value = False
        process = _fake_running_process(tmp_path)

        ProcessLifecycle([first, unsupported, second]).terminate(process)

        first.kill_tree.assert_called_once_with(process)
        second.kill_tree.assert_called_once_with(process)
        unsupported.kill_tree.assert_not_called()

    def test_failing_strategy_does_not_stop_the_next(self, tmp_path):
        failing, second = mock.Mock(spec=TerminateStrategy), mock.Mock(spec=TerminateStrategy)
        failing.name = "failing"
        failing.is_supported.return_value = True
        failing.kill_tree.side_effect = psutil.AccessDenied(4242)
        second.is_supported.return_value = True
        process = _fake_running_process(tmp_path)

        ProcessLifecycle([failing, second]).terminate(process)

        second.kill_tree.assert_called_once_with(process)

    def test_descendant_enumeration(self, tmp_path):
        """Descendants are killed before the process itself; vanished ones are skipped."""
        vanished, survivor, parent = mock.Mock(pid=1), mock.Mock(pid=2), mock.Mock()
        vanished.kill.side_effect = psutil.NoSuchProcess(1)
        parent.children.return_value = [vanished, survivor]
        process = _fake_running_process(tmp_path)

        with mock.patch("mcwrapper.local.supervisor.process_utils.psutil.Process", return_value=parent) as ctor:
            DescendantEnumeration().kill_tree(process)

        ctor.assert_called_once_with(4242)
        parent.children.assert_called_once_with(recursive=True)
        survivor.kill.assert_called_once()
        parent.kill.assert_called_once()

    def test_descendant_enumeration_falls_back_to_handle(self, tmp_path):
        process = _fake_running_process(tmp_path)

        with mock.patch("mcwrapper.local.supervisor.process_utils.psutil.Process",
                        side_effect=psutil.NoSuchProcess(4242)):
            DescendantEnumeration().kill_tree(process)

        process.handle.kill.assert_called_once()

    def test_native_tree_kill(self, tmp_path):
        strategy = NativeTreeKill(timeout=7)
        process = _fake_running_process(tmp_path)

        with mock.patch("mcwrapper.local.supervisor.process_utils.subprocess.run") as run:
            strategy.kill_tree(process)

        assert run.call_args[0][0] == ["taskkill", "/F", "/T", "/PID", "4242"]
        assert run.call_args[1]["timeout"] == 7
        assert strategy.is_supported() == (sys.platform == "win32")
