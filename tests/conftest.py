"""
공통 테스트 픽스처
"""

import subprocess
from unittest.mock import MagicMock

import pytest
import yaml

from openvpn_as_docker.config import Config
from openvpn_as_docker.docker import DockerClient
from openvpn_as_docker.logger import init_logger
from openvpn_as_docker.sacli import SacliClient


def completed(stdout: str = "", returncode: int = 0, stderr: str = "") -> subprocess.CompletedProcess:
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


@pytest.fixture(autouse=True)
def logger(tmp_path):
    return init_logger(str(tmp_path / "tool-logs"), "INFO", False)


@pytest.fixture
def project_dir(tmp_path):
    path = tmp_path / "project"
    path.mkdir()
    return path


@pytest.fixture
def config_file(tmp_path, project_dir):
    data = {
        "project": {"dir": str(project_dir)},
        "wait": {"max_attempts": 3, "interval": 0},
        "health": {"report_dir": str(tmp_path / "reports")},
        "agent": {"log_dir": str(tmp_path / "tool-logs")},
    }
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return path


@pytest.fixture
def config(config_file):
    return Config(str(config_file))


@pytest.fixture
def docker():
    mock = MagicMock(spec=DockerClient)
    mock.container_name = "openvpn-access-server"
    mock.is_running.return_value = True
    mock.exists.return_value = True
    mock.exec.return_value = completed()
    mock.copy_from.return_value = completed()
    mock.copy_to.return_value = completed()
    mock.inspect.return_value = completed("Image: openvpn/openvpn-as:latest\n")
    mock.stats.return_value = completed("12.50%\n")
    mock.ps_table.return_value = completed("NAMES\tSTATUS\n")
    mock.wait_until_ready.return_value = True
    return mock


@pytest.fixture
def sacli():
    mock = MagicMock(spec=SacliClient)
    mock.config_query.return_value = completed('{"host.name": "vpn.example.com"}\n')
    mock.user_prop_query.return_value = completed('{"alice": {"type": "user_connect"}}\n')
    mock.version.return_value = completed("2.12.1\n")
    mock.vpn_status.return_value = completed("{}\n")
    mock.user_prop_put.return_value = completed()
    mock.user_prop_del.return_value = completed()
    mock.set_local_password.return_value = completed()
    return mock
