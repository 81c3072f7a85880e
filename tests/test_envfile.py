"""
환경 파일 모듈 테스트
"""

import pytest
import yaml

from openvpn_as_docker.envfile import (
    EnvSettings,
    load_env_file,
    parse_env,
    render_compose,
    render_env_example,
)


def test_parse_env_skips_comments_and_blank_lines():
    text = """
# comment
SERVER_HOSTNAME=vpn.example.com

   # indented comment
ADMIN_USERNAME=admin
"""
    assert parse_env(text) == {"SERVER_HOSTNAME": "vpn.example.com", "ADMIN_USERNAME": "admin"}


def test_parse_env_strips_quotes_and_export():
    text = """export ADMIN_PASSWORD="s3cret=="
ADMIN_USERNAME='ops'
TZ="Asia/Seoul
"""
    values = parse_env(text)
    assert values["ADMIN_PASSWORD"] == "s3cret=="
    assert values["ADMIN_USERNAME"] == "ops"
    # 짝이 맞지 않는 따옴표는 그대로 둔다
    assert values["TZ"] == '"Asia/Seoul'


def test_parse_env_ignores_lines_without_equals():
    assert parse_env("JUSTAWORD\nKEY=value") == {"KEY": "value"}


def test_load_missing_env_file(tmp_path):
    assert load_env_file(tmp_path / "missing.env") == {}


def test_env_settings_defaults():
    env = EnvSettings.from_dict({})
    assert env.server_hostname == "localhost"
    assert env.admin_username == "openvpn"
    assert env.admin_ui_port == 943
    assert env.openvpn_port == 1194
    assert env.vpn_protocol == "udp"
    assert env.image_ref("openvpn/openvpn-as") == "openvpn/openvpn-as:latest"


def test_env_settings_from_file(tmp_path):
    path = tmp_path / ".env"
    path.write_text(
        "SERVER_HOSTNAME=vpn.example.com\nADMIN_UI_PORT=9443\nOPENVPN_VERSION=2.12.1\n",
        encoding="utf-8",
    )
    env = EnvSettings.from_file(path)

    assert env.admin_ui_port == 9443
    assert env.admin_url == "https://vpn.example.com:9443/admin"
    assert env.client_url == "https://vpn.example.com:943/"
    assert env.image_ref("openvpn/openvpn-as") == "openvpn/openvpn-as:2.12.1"


def test_env_settings_empty_value_keeps_default():
    env = EnvSettings.from_dict({"ADMIN_USERNAME": ""})
    assert env.admin_username == "openvpn"


def test_env_settings_invalid_port():
    with pytest.raises(ValueError, match="OPENVPN_PORT"):
        EnvSettings.from_dict({"OPENVPN_PORT": "abc"})


@pytest.mark.parametrize("password,expected", [
    ("changeme", True),
    ("changeme123!", True),
    ("Xk2-long-password", False),
])
def test_uses_default_password(password, expected):
    assert EnvSettings(admin_password=password).uses_default_password is expected


def test_render_env_example_parses_back():
    values = parse_env(render_env_example())

    assert values["SERVER_HOSTNAME"] == "localhost"
    assert values["ADMIN_PASSWORD"] == "changeme123!"
    assert values["OPENVPN_PORT"] == "1194"
    assert EnvSettings.from_dict(values).uses_default_password


def test_render_compose_is_valid_yaml():
    content = render_compose("my-vpn", "openvpn/openvpn-as", ".env")
    data = yaml.safe_load(content)

    service = data["services"]["openvpn-as"]
    assert service["container_name"] == "my-vpn"
    assert service["image"] == "openvpn/openvpn-as:${OPENVPN_VERSION:-latest}"
    assert service["env_file"] == [".env"]
    assert "./data/openvpn-as:/openvpn" in service["volumes"]
    assert "NET_ADMIN" in service["cap_add"]
