"""
sacli 래퍼 테스트
"""

import subprocess
from unittest.mock import MagicMock

import pytest

from openvpn_as_docker.docker import DockerClient
from openvpn_as_docker.sacli import SacliClient, parse_usernames

SACLI = "/usr/local/openvpn_as/scripts/sacli"


def _mock_result(stdout: str = "", returncode: int = 0) -> subprocess.CompletedProcess:
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr="")


@pytest.fixture
def docker():
    mock = MagicMock(spec=DockerClient)
    mock.exec.return_value = _mock_result()
    return mock


class TestParseUsernames:
    def test_json_keys(self):
        output = '{"bob": {"type": "user_connect"}, "alice": {"prop_autologin": "true"}}'
        assert parse_usernames(output) == ["alice", "bob"]

    def test_text_lines(self):
        output = "bob.type user_connect\nalice.prop_autologin true\nbob.prop_autologin true\n  indented.line x\n"
        assert parse_usernames(output) == ["alice", "bob"]

    def test_empty(self):
        assert parse_usernames("") == []
        assert parse_usernames("\n") == []


def test_set_local_password_uses_stdin(docker):
    SacliClient(docker, SACLI).set_local_password("openvpn", "n3w-pass")

    args, kwargs = docker.exec.call_args
    assert args[0] == [SACLI, "--user", "openvpn", "SetLocalPassword"]
    assert kwargs["input"] == "n3w-pass\n"
    assert "n3w-pass" not in args[0]


def test_user_prop_put(docker):
    SacliClient(docker, SACLI).user_prop_put("bob", "type", "user_connect")
    assert docker.exec.call_args[0][0] == [
        SACLI, "--user", "bob", "--key", "type", "--value", "user_connect", "UserPropPut"
    ]


def test_user_prop_del(docker):
    SacliClient(docker, SACLI).user_prop_del("bob")
    assert docker.exec.call_args[0][0] == [SACLI, "--user", "bob", "UserPropDel"]


def test_list_users(docker):
    docker.exec.return_value = _mock_result('{"carol": {}, "bob": {}}')
    assert SacliClient(docker, SACLI).list_users() == ["bob", "carol"]


def test_list_users_failure(docker):
    docker.exec.return_value = _mock_result(returncode=1)
    with pytest.raises(subprocess.CalledProcessError):
        SacliClient(docker, SACLI).list_users()
