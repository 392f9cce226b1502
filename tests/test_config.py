"""Tests for configuration file loading and derived defaults."""

import json

import pytest

from agentgraph.config import (
    CONFIG_ENV_VAR,
    DEFAULT_MAX_STEPS,
    CancellationPolicy,
    ExecutorConfig,
    get_agentgraph_config,
    get_checkpoint_storage_path,
    get_log_format,
    get_log_level,
)
from agentgraph.storage.checkpoint_store import FileCheckpointStore


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    path = tmp_path / "configuration.json"
    monkeypatch.setenv(CONFIG_ENV_VAR, str(path))
    return path


def test_missing_file_gives_defaults(config_file):
    assert get_agentgraph_config() == {}

    config = ExecutorConfig()

    assert config.max_steps == DEFAULT_MAX_STEPS
    assert config.node_timeout_seconds is None
    assert config.cancellation_policy == CancellationPolicy.FINISH
    assert config.retry_backoff_seconds == 1.0


def test_invalid_json_is_ignored(config_file):
    config_file.write_text("{not json")

    assert get_agentgraph_config() == {}


def test_values_come_from_file(config_file, tmp_path):
    config_file.write_text(
        json.dumps(
            {
                "execution": {
                    "max_steps": 7,
                    "node_timeout_seconds": 2.5,
                    "cancellation_policy": "abandon",
                    "retry_backoff_seconds": 0.1,
                },
                "checkpoints": {"storage_path": str(tmp_path / "ckpt")},
                "logging": {"level": "DEBUG", "format": "json"},
            }
        )
    )

    config = ExecutorConfig()

    assert config.max_steps == 7
    assert config.node_timeout_seconds == 2.5
    assert config.cancellation_policy == CancellationPolicy.ABANDON
    assert config.retry_backoff_seconds == 0.1
    assert get_checkpoint_storage_path() == tmp_path / "ckpt"
    assert FileCheckpointStore().base_path == tmp_path / "ckpt"
    assert get_log_level() == "DEBUG"
    assert get_log_format() == "json"


def test_unknown_cancellation_policy_falls_back(config_file):
    config_file.write_text(json.dumps({"execution": {"cancellation_policy": "explode"}}))

    assert ExecutorConfig().cancellation_policy == CancellationPolicy.FINISH


def test_explicit_values_override_file(config_file):
    config_file.write_text(json.dumps({"execution": {"max_steps": 7}}))

    assert ExecutorConfig(max_steps=3).max_steps == 3


def test_policy_strings_are_coerced(config_file):
    assert ExecutorConfig(cancellation_policy="abandon").cancellation_policy is (
        CancellationPolicy.ABANDON
    )


def test_max_steps_must_be_positive(config_file):
    with pytest.raises(ValueError):
        ExecutorConfig(max_steps=0)
