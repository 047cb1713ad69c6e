import os
import signal

import pytest

from borg_wrapper.cleanup import SignalReceived, raising_signal_handler
from borg_wrapper.engine import Engine


def script(tmp_path, body):
    path = tmp_path / "fake-borg"
    path.write_text("#!/bin/sh\n" + body, encoding="utf-8")
    path.chmod(0o755)
    return str(path)


def test_exit_code_and_arguments_pass_through(tmp_path):
    out = tmp_path / "args.txt"
    engine = Engine(script(tmp_path, f'printf "%s\\n" "$@" > {out}\nexit 4\n'))

    assert engine.run(["create", "--stats", "repo::a b"]) == 4
    assert out.read_text(encoding="utf-8").splitlines() == ["create", "--stats", "repo::a b"]


def test_environment_is_explicit_per_call(tmp_path):
    out = tmp_path / "env.txt"
    engine = Engine(
        script(tmp_path, f'echo "$BORG_REPO|$BORG_RSH|$BASE_ONLY" > {out}\n'),
        base_env={"PATH": os.environ.get("PATH", "/usr/bin:/bin"), "BASE_ONLY": "base"},
    )

    assert engine.run(["list"], env={"BORG_REPO": "/srv/repo", "BORG_RSH": "ssh"}) == 0
    assert out.read_text(encoding="utf-8").strip() == "/srv/repo|ssh|base"

    engine.run(["list"])
    assert out.read_text(encoding="utf-8").strip() == "||base"


def test_missing_binary_returns_127(tmp_path, caplog):
    with caplog.at_level("ERROR"):
        assert Engine(str(tmp_path / "absent")).run(["init"]) == 127
    assert "not found" in caplog.text


def test_interrupted_wait_terminates_child(tmp_path):
    pid_file = tmp_path / "pid"
    engine = Engine(script(tmp_path, f"echo $$ > {pid_file}\nkill -TERM $PPID\nexec sleep 30\n"))

    previous = signal.signal(signal.SIGTERM, raising_signal_handler)
    try:
        with pytest.raises(SignalReceived):
            engine.run(["create"])
    finally:
        signal.signal(signal.SIGTERM, previous)

    child = int(pid_file.read_text(encoding="utf-8"))
    with pytest.raises(ProcessLookupError):
        os.kill(child, 0)


def test_killed_engine_reports_128_plus_signal(tmp_path, caplog):
    engine = Engine(script(tmp_path, "kill -KILL $$\n"))

    with caplog.at_level("ERROR"):
        assert engine.run(["check"]) == 128 + signal.SIGKILL
    assert "killed by signal 9" in caplog.text
