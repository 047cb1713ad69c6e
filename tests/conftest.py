import os
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Union

import pytest

from borg_wrapper.config import RetentionConfig, WrapperConfig

REPOSITORY = "ssh://backup@backup.example.com/./host"


class FakeEngine:
    """Records every invocation instead of spawning borg.

    ``results`` holds one entry per expected call: an exit code, or a callable
    receiving ``(args, env)`` and returning one.
    """

    def __init__(self, results: Sequence[Union[int, Callable]] = ()) -> None:
        self.results = list(results)
        self.calls: List[List[str]] = []
        self.envs: List[Dict[str, str]] = []

    def run(self, args: Sequence[str], env: Optional[Mapping[str, str]] = None) -> int:
        self.calls.append(list(args))
        self.envs.append(dict(env or {}))
        result = self.results.pop(0) if self.results else 0
        if callable(result):
            return result(list(args), dict(env or {}))
        return result


@pytest.fixture
def make_engine():
    return FakeEngine


@pytest.fixture
def lock_dir(tmp_path):
    return tmp_path / "locks"


@pytest.fixture
def make_config(lock_dir):
    def _make(**overrides) -> WrapperConfig:
        values = dict(
            repository=REPOSITORY,
            paths=["/etc", "/home"],
            host_identifier="web1",
            lock_dir=lock_dir,
        )
        values.update(overrides)
        return WrapperConfig(**values)

    return _make


@pytest.fixture
def config(make_config):
    return make_config(
        excludes=["*/.cache", "/home/*/Downloads"],
        retention=RetentionConfig(daily=7, weekly=4),
    )


@pytest.fixture
def lock_files(lock_dir):
    def _list():
        if not lock_dir.exists():
            return []
        return sorted(os.listdir(lock_dir))

    return _list
