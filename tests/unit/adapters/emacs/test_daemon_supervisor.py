"""Unit tests for EmacsDaemonSupervisor."""

import logging
import subprocess
import threading
from dataclasses import replace
from pathlib import Path

import pytest

from orgrender.adapters.emacs import supervisor as supervisor_module
from orgrender.adapters.emacs.supervisor import EmacsDaemonSupervisor, terminate_host
from orgrender.domain.config import DaemonConfig, OrgConfig, OrgRenderConfig
from orgrender.domain.entities import DaemonState, EngineError
from orgrender.domain.exceptions import DaemonDeadError, DaemonStartupError
from tests.helpers.fake_process import FakeChannel, FakeProcess, FakeRunner


@pytest.fixture
def fatal_errors() -> list[DaemonStartupError]:
    return []


@pytest.fixture
def make_supervisor(project_dir, runner, channel, fatal_errors):
    """Build supervisors wired to fakes; releases launcher processes on teardown."""
    created: list[EmacsDaemonSupervisor] = []

    def _make(config: OrgRenderConfig, **overrides) -> EmacsDaemonSupervisor:
        kwargs = {
            "project_dir": project_dir,
            "runner": runner,
            "channel_factory": lambda: channel,
            "on_fatal": fatal_errors.append,
        }
        kwargs.update(overrides)
        supervisor = EmacsDaemonSupervisor(config, **kwargs)
        created.append(supervisor)
        return supervisor

    yield _make

    for supervisor in created:
        supervisor.cancel()
        process = supervisor.runner.process
        if process._release is not None:
            process._release.set()
        if supervisor._observer is not None:
            supervisor._observer.join(timeout=2)


def _with_daemon(config: OrgRenderConfig, **changes) -> OrgRenderConfig:
    return replace(config, daemon=replace(config.daemon, **changes))


def _exit_launcher(supervisor: EmacsDaemonSupervisor) -> None:
    supervisor.runner.process._release.set()
    supervisor._observer.join(timeout=2)
    assert not supervisor._observer.is_alive()


class TestEntryPoint:
    """Tests for locating hexo-renderer-org.el."""

    def test_finds_copy_in_node_modules(self, make_supervisor, config, project_dir) -> None:
        supervisor = make_supervisor(config)

        expected = (
            project_dir / "node_modules" / "hexo-renderer-org" / "emacs"
            / "hexo-renderer-org.el"
        )
        assert supervisor.locate_entry_point() == expected

    def test_project_emacs_dir_wins(self, make_supervisor, config, project_dir) -> None:
        local = project_dir / "emacs"
        local.mkdir()
        (local / "hexo-renderer-org.el").write_text("")

        supervisor = make_supervisor(config)

        assert supervisor.locate_entry_point() == local / "hexo-renderer-org.el"

    def test_configured_entry_point(self, make_supervisor, config, project_dir) -> None:
        custom = project_dir / "lisp" / "custom.el"
        custom.parent.mkdir()
        custom.write_text("")
        config = replace(config, org=replace(config.org, entry_point="lisp/custom.el"))

        supervisor = make_supervisor(config)

        assert supervisor.locate_entry_point() == custom

    def test_missing_entry_point_raises(self, make_supervisor, config, tmp_path) -> None:
        empty = tmp_path / "empty"
        empty.mkdir()
        supervisor = make_supervisor(config, project_dir=empty)

        with pytest.raises(DaemonStartupError, match="hexo-renderer-org.el"):
            supervisor.start()

        assert supervisor.runner.spawned == []

    def test_user_config_is_resolved_against_project(
        self, make_supervisor, config, project_dir
    ) -> None:
        config = replace(config, org=replace(config.org, user_config="init/user.el"))

        supervisor = make_supervisor(config)

        assert supervisor.resolve_user_config() == str(project_dir / "init" / "user.el")

    def test_unset_user_config_is_empty(self, make_supervisor, config) -> None:
        assert make_supervisor(config).resolve_user_config() == ""


class TestStart:
    """Tests for starting the daemon."""

    def test_spawns_emacs_daemon(self, make_supervisor, config, runner, channel) -> None:
        supervisor = make_supervisor(config)

        handle = supervisor.start()

        assert handle.name == "hexo-renderer-org"
        assert supervisor.state is DaemonState.STARTING
        assert len(runner.spawned) == 1
        args = runner.spawned[0]
        assert args[:4] == ["emacs", "-Q", "--daemon=hexo-renderer-org", "--eval"]
        script = args[4]
        assert f'hexo-renderer-org--debug-file "{channel.location}"' in script
        assert 'hexo-renderer-org-theme "dark"' in script
        assert "org-hexo-use-htmlize  t" in script
        assert "\n" not in script

    def test_start_is_idempotent(self, make_supervisor, config, runner) -> None:
        supervisor = make_supervisor(config)

        first = supervisor.start()
        second = supervisor.start()

        assert first is second
        assert len(runner.spawned) == 1

    def test_clean_launcher_exit_marks_alive(self, make_supervisor, config) -> None:
        supervisor = make_supervisor(config)
        supervisor.start()

        _exit_launcher(supervisor)

        assert supervisor.state is DaemonState.ALIVE
        assert not supervisor.is_dead()

    def test_failed_launcher_exit_only_warns(
        self, make_supervisor, config, fatal_errors, caplog
    ) -> None:
        runner = FakeRunner(process=FakeProcess(exit_code=1, release=threading.Event()))
        supervisor = make_supervisor(config, runner=runner)
        supervisor.start()

        with caplog.at_level(logging.WARNING):
            _exit_launcher(supervisor)

        assert supervisor.state is DaemonState.STARTING
        assert fatal_errors == []
        assert "exited with code 1" in caplog.text

    def test_clean_launcher_owns_daemon(self, make_supervisor, config) -> None:
        supervisor = make_supervisor(config)
        assert not supervisor.owns_daemon

        supervisor.start()
        assert supervisor.owns_daemon
        _exit_launcher(supervisor)

        assert supervisor.owns_daemon
        supervisor.stop_and_wait()
        assert not supervisor.owns_daemon

    def test_failed_launcher_does_not_own_daemon(self, make_supervisor, config) -> None:
        runner = FakeRunner(process=FakeProcess(exit_code=1, release=threading.Event()))
        supervisor = make_supervisor(config, runner=runner)
        supervisor.start()

        _exit_launcher(supervisor)

        assert not supervisor.owns_daemon

    def test_spawn_failure_marks_dead(self, make_supervisor, config, runner, channel) -> None:
        runner.spawn_error = FileNotFoundError("emacs")
        supervisor = make_supervisor(config)

        with pytest.raises(DaemonStartupError, match="Failed to start daemon"):
            supervisor.start()

        assert supervisor.is_dead()
        assert channel.discarded

    def test_start_after_death_raises(self, make_supervisor, config, channel) -> None:
        supervisor = make_supervisor(config)
        supervisor.start()
        channel.record = EngineError("boom")
        assert supervisor.is_dead()

        with pytest.raises(DaemonDeadError):
            supervisor.start()

    def test_debug_logs_bootstrap_script(self, make_supervisor, config, caplog) -> None:
        config = replace(config, org=replace(config.org, debug=True))
        supervisor = make_supervisor(config)

        with caplog.at_level(logging.INFO, logger="orgrender"):
            supervisor.start()

        assert "bootstrap script: (progn" in caplog.text


class TestErrorChannel:
    """Tests for fatal error detection."""

    def test_sentinel_record_kills_daemon_exactly_once(
        self, make_supervisor, config, channel, fatal_errors, caplog
    ) -> None:
        supervisor = make_supervisor(config)
        supervisor.start()
        channel.record = EngineError("fatal parse error")

        with caplog.at_level(logging.INFO, logger="orgrender"):
            _exit_launcher(supervisor)
            assert supervisor.is_dead()
            assert supervisor.is_dead()

        assert supervisor.state is DaemonState.DEAD
        assert len(fatal_errors) == 1
        assert fatal_errors[0].message == "fatal parse error"
        failures = [r for r in caplog.records if "fatal parse error" in r.getMessage()]
        assert len(failures) == 1
        assert failures[0].levelno == logging.ERROR

    def test_record_noticed_while_polling(
        self, make_supervisor, config, channel, fatal_errors
    ) -> None:
        supervisor = make_supervisor(config)
        supervisor.start()
        assert not supervisor.is_dead()

        channel.record = EngineError("Symbol's function definition is void")

        assert supervisor.is_dead()
        assert len(fatal_errors) == 1

    def test_concurrent_observers_report_once(
        self, make_supervisor, config, channel, fatal_errors
    ) -> None:
        supervisor = make_supervisor(config)
        supervisor.start()
        channel.record = EngineError("boom")

        threads = [threading.Thread(target=supervisor.is_dead) for _ in range(8)]
        for t in threads:
            t.start()
        _exit_launcher(supervisor)
        for t in threads:
            t.join()

        assert len(fatal_errors) == 1


class TestReadiness:
    """Tests for wait_until_ready."""

    def test_ready_after_pings(self, make_supervisor, config) -> None:
        runner = FakeRunner(exit_codes=[1, 1, 0])
        supervisor = make_supervisor(config, runner=runner)
        supervisor.start()

        assert supervisor.wait_until_ready() is True

        assert len(runner.calls) == 3
        assert runner.calls[0] == [
            "emacsclient",
            "-s",
            "hexo-renderer-org",
            "-e",
            '(message "ping")',
        ]
        assert supervisor.state is DaemonState.ALIVE

    def test_bounded_wait_gives_up(self, make_supervisor, config) -> None:
        runner = FakeRunner(default=1)
        supervisor = make_supervisor(
            _with_daemon(config, ready_max_attempts=3), runner=runner
        )
        supervisor.start()

        assert supervisor.wait_until_ready() is False
        assert len(runner.calls) == 3

    def test_dead_daemon_is_never_ready(self, make_supervisor, config, channel) -> None:
        runner = FakeRunner(default=1)
        supervisor = make_supervisor(config, runner=runner)
        supervisor.start()
        channel.record = EngineError("boom")

        assert supervisor.wait_until_ready() is False
        assert runner.calls == []

    def test_wait_can_be_cancelled(self, make_supervisor, config) -> None:
        runner = FakeRunner(default=1)
        supervisor = make_supervisor(
            _with_daemon(config, ready_interval=30), runner=runner
        )
        supervisor.start()
        results: list[bool] = []

        waiter = threading.Thread(
            target=lambda: results.append(supervisor.wait_until_ready())
        )
        waiter.start()
        supervisor.cancel()
        waiter.join(timeout=2)

        assert not waiter.is_alive()
        assert results == [False]

    def test_ping_timeout_counts_as_unreachable(self, make_supervisor, config) -> None:
        runner = FakeRunner(
            exit_codes=[subprocess.TimeoutExpired("emacsclient", 5)]
        )
        supervisor = make_supervisor(
            _with_daemon(config, attempt_timeout=5.0), runner=runner
        )

        assert supervisor.ping() is False
        assert runner.timeouts == [5.0]

    def test_missing_emacsclient_counts_as_unreachable(self, make_supervisor, config) -> None:
        runner = FakeRunner(exit_codes=[FileNotFoundError("emacsclient")])
        supervisor = make_supervisor(config, runner=runner)

        assert supervisor.ping() is False


class TestStop:
    """Tests for stopping the daemon."""

    def test_stop_sends_kill(self, make_supervisor, config, runner, channel) -> None:
        supervisor = make_supervisor(config)
        supervisor.start()

        assert supervisor.stop_and_wait() is True

        assert runner.calls == [
            ["emacsclient", "-s", "hexo-renderer-org", "-e", "(kill-emacs)"]
        ]
        assert channel.discarded
        assert supervisor.handle is None

    def test_stop_retries_until_kill_succeeds(
        self, make_supervisor, config, caplog
    ) -> None:
        runner = FakeRunner(exit_codes=[1, 1, 0])
        debug = replace(config, org=replace(config.org, debug=True))
        supervisor = make_supervisor(debug, runner=runner)

        with caplog.at_level(logging.INFO, logger="orgrender"):
            assert supervisor.stop_and_wait() is True

        assert len(runner.calls) == 3
        waits = [r for r in caplog.records if r.getMessage() == "Wait for emacs daemon exit"]
        assert len(waits) == 2

    def test_stop_runs_in_background(self, make_supervisor, config, runner) -> None:
        supervisor = make_supervisor(config)
        supervisor.start()

        worker = supervisor.stop()
        assert worker is not None
        worker.join(timeout=2)

        assert not worker.is_alive()
        assert len(runner.calls) == 1

    def test_stop_when_dead_returns_immediately(
        self, make_supervisor, config, runner, channel
    ) -> None:
        supervisor = make_supervisor(config)
        supervisor.start()
        channel.record = EngineError("boom")

        assert supervisor.stop() is None
        assert supervisor.stop_and_wait() is True
        assert runner.calls == []

    def test_bounded_stop_gives_up(self, make_supervisor, config) -> None:
        runner = FakeRunner(default=1)
        supervisor = make_supervisor(
            _with_daemon(config, stop_max_attempts=4), runner=runner
        )

        assert supervisor.stop_and_wait() is False
        assert len(runner.calls) == 4

    def test_stop_can_be_cancelled(self, make_supervisor, config) -> None:
        runner = FakeRunner(default=1)
        supervisor = make_supervisor(
            _with_daemon(config, stop_interval=30), runner=runner
        )

        worker = supervisor.stop()
        supervisor.cancel()
        worker.join(timeout=2)

        assert not worker.is_alive()

    def test_kill_timeout_is_retried(self, make_supervisor, config) -> None:
        runner = FakeRunner(
            exit_codes=[subprocess.TimeoutExpired("emacsclient", 1), 0]
        )
        supervisor = make_supervisor(
            _with_daemon(config, attempt_timeout=1.0), runner=runner
        )

        assert supervisor.stop_and_wait() is True
        assert len(runner.calls) == 2


class TestTerminateHost:
    """Tests for the default fatal-error hook."""

    def test_exits_with_software_error_code(self, monkeypatch) -> None:
        exits: list[int] = []
        monkeypatch.setattr(supervisor_module.os, "_exit", exits.append)
        monkeypatch.setattr(supervisor_module.logging, "shutdown", lambda: None)

        terminate_host(DaemonStartupError("boom"))

        assert exits == [70]


def test_default_config_builds(project_dir) -> None:
    supervisor = EmacsDaemonSupervisor(
        OrgRenderConfig(org=OrgConfig(), daemon=DaemonConfig()),
        project_dir=project_dir,
    )

    assert supervisor.name == "hexo-renderer-org"
    assert supervisor.state is DaemonState.NOT_STARTED
    assert supervisor.handle is None
    assert not supervisor.is_dead()
