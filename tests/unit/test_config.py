"""Tests for configuration loading."""

import os

import pytest

from qnakb.core.operation_monitor import PollingPolicy
from qnakb.lib.config import ConfigLoader

ENV_VARS = [
    "QNA_AUTHORING_KEY",
    "QNA_RESOURCE_NAME",
    "QNA_APPLICATION_NAME",
    "QNA_KNOWLEDGE_BASE_ID",
    "QNA_QUERY_ENDPOINT_KEY",
    "QNA_REQUEST_TIMEOUT",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    yield
    # load_dotenv writes straight to os.environ
    for name in ENV_VARS:
        os.environ.pop(name, None)


def test_yaml_values_and_blank_normalization(tmp_path):
    (tmp_path / "qna.yaml").write_text(
        "service:\n"
        "  resource_name: contoso-qna\n"
        "  application_name: contoso-qna-app\n"
        '  knowledge_base_id: ""\n'
        "polling:\n"
        "  interval: 1.5\n"
        "  max_attempts: 4\n"
        "  timeout: 60\n"
    )

    config = ConfigLoader(config_dir=str(tmp_path), env_file=str(tmp_path / "missing.env"))

    assert config.service.resource_name == "contoso-qna"
    assert config.service.knowledge_base_id is None
    assert config.service.management_endpoint == "https://contoso-qna.cognitiveservices.azure.com"
    assert config.service.runtime_endpoint == "https://contoso-qna-app.azurewebsites.net"
    policy = PollingPolicy.from_settings(config.polling)
    assert (policy.interval, policy.max_attempts, policy.timeout) == (1.5, 4, 60.0)


def test_environment_overrides_yaml(tmp_path, monkeypatch):
    (tmp_path / "qna.yaml").write_text("service:\n  resource_name: from-yaml\n")
    monkeypatch.setenv("QNA_RESOURCE_NAME", "from-env")
    monkeypatch.setenv("QNA_QUERY_ENDPOINT_KEY", "")

    config = ConfigLoader(config_dir=str(tmp_path), env_file=str(tmp_path / "missing.env"))

    assert config.service.resource_name == "from-env"
    assert config.service.query_key is None


def test_env_file_is_loaded(tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text("QNA_AUTHORING_KEY=secret\nQNA_KNOWLEDGE_BASE_ID=kb-7\n")

    config = ConfigLoader(config_dir=str(tmp_path), env_file=str(env_file))

    assert config.service.authoring_key == "secret"
    assert config.service.knowledge_base_id == "kb-7"
    assert config.polling.max_attempts == 20


def test_invalid_polling_settings(tmp_path):
    (tmp_path / "qna.yaml").write_text("polling:\n  max_attempts: 0\n")

    with pytest.raises(ValueError, match="max_attempts"):
        ConfigLoader(config_dir=str(tmp_path), env_file=str(tmp_path / "missing.env"))
