from pathlib import Path

import pytest

from borg_wrapper.config import DEFAULT_LOCK_DIR, ConfigurationError, SecretRef, load_config

MINIMAL = """
repository: ssh://backup@host/./repo
paths:
  - /etc
"""


def write(tmp_path, text):
    path = tmp_path / "config.yaml"
    path.write_text(text, encoding="utf-8")
    return path


def test_minimal_config_defaults(tmp_path):
    config = load_config(write(tmp_path, MINIMAL))

    assert config.repository == "ssh://backup@host/./repo"
    assert config.engine == "borg"
    assert config.bwlimit == "0"
    assert config.transport_command == "ssh"
    assert config.excludes == []
    assert config.lock_dir == DEFAULT_LOCK_DIR
    assert config.logging.level == "INFO"
    assert config.passphrase is None
    assert config.arguments.create is None
    retention = config.retention
    assert (retention.hourly, retention.daily, retention.weekly, retention.monthly, retention.yearly) == (0, 0, 0, 0, 0)


def test_full_config(tmp_path):
    secret = tmp_path / "passphrase"
    secret.write_text("s3cret\n", encoding="utf-8")
    text = f"""
repository: /srv/borg/repo
passphrase:
  file: {secret}
engine: /usr/local/bin/borg
paths: [/etc, /var/lib]
excludes: ["*/.cache"]
transport_command: ssh -i /root/.ssh/backup
bwlimit: 2M
host_identifier: web1
retention: {{daily: 7, weekly: 4, monthly: 6}}
arguments:
  create: ["--compression", "zstd"]
  check: []
lock_dir: {tmp_path / "locks"}
logging:
  level: debug
"""
    config = load_config(write(tmp_path, text))

    assert config.resolved_passphrase() == "s3cret"
    assert config.resolved_host() == "web1"
    assert config.retention.monthly == 6
    assert config.arguments.create == ["--compression", "zstd"]
    assert config.arguments.check == []
    assert config.arguments.prune is None
    assert config.lock_dir == tmp_path / "locks"
    assert config.logging.level == "DEBUG"


def test_plain_string_passphrase_and_integer_bwlimit(tmp_path):
    config = load_config(write(tmp_path, MINIMAL + "passphrase: hunter2\nbwlimit: 1024\n"))
    assert config.resolved_passphrase() == "hunter2"
    assert config.bwlimit == "1024"


def test_secret_ref_prefers_value_then_env(monkeypatch, tmp_path):
    monkeypatch.setenv("BACKUP_SECRET", "from-env")
    assert SecretRef(value="inline", env="BACKUP_SECRET").resolve() == "inline"
    assert SecretRef(env="BACKUP_SECRET").resolve() == "from-env"
    assert SecretRef(env="UNSET_BACKUP_SECRET", file=tmp_path / "missing").resolve() is None


@pytest.mark.parametrize(
    "extra",
    [
        "bwlimit: 10MB\n",
        "bwlimit: 1.5G\n",
        "retention: {daily: -1}\n",
        "retention: {fortnightly: 2}\n",
        "arguments: {list: [--short]}\n",
        "unknown_key: true\n",
    ],
)
def test_invalid_values_are_rejected_at_load(tmp_path, extra):
    with pytest.raises(ConfigurationError):
        load_config(write(tmp_path, MINIMAL + extra))


@pytest.mark.parametrize(
    "text",
    [
        "paths: [/etc]\n",
        "repository: ''\npaths: [/etc]\n",
        "repository: /srv/repo\npaths: []\n",
        "repository: [unclosed\n",
    ],
)
def test_missing_or_malformed_documents(tmp_path, text):
    with pytest.raises(ConfigurationError):
        load_config(write(tmp_path, text))


def test_missing_file(tmp_path):
    with pytest.raises(ConfigurationError) as excinfo:
        load_config(Path(tmp_path / "nope.yaml"))
    assert "not found" in str(excinfo.value)
