"""
환경 파일(.env) 관리 모듈
KEY=value 파싱, 기본값 제공, .env.example / docker-compose.yml 템플릿 렌더링
"""

import os
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Dict, Union
from jinja2 import Template

DEFAULT_ADMIN_PASSWORDS = ("changeme", "changeme123!")


def parse_env(text: str) -> Dict[str, str]:
    """KEY=value 텍스트 파싱

    빈 줄과 # 주석은 무시하고, 'export ' 접두어와 한 겹의 따옴표를 제거한다.
    """
    values = {}
    for raw in text.splitlines():
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[len("export "):].lstrip()
        if "=" not in line:
            continue

        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
            value = value[1:-1]
        if key:
            values[key] = value
    return values


def load_env_file(path: Union[str, Path]) -> Dict[str, str]:
    """환경 파일 로드 (없으면 빈 딕셔너리)"""
    path = Path(os.path.expanduser(str(path)))
    if not path.is_file():
        return {}
    return parse_env(path.read_text(encoding="utf-8"))


@dataclass
class EnvSettings:
    """환경 파일 값 (기본값 포함)"""
    server_hostname: str = "localhost"
    admin_username: str = "openvpn"
    admin_password: str = ""
    admin_ui_port: int = 943
    client_ui_port: int = 943
    openvpn_port: int = 1194
    vpn_protocol: str = "udp"
    openvpn_version: str = "latest"
    tz: str = "UTC"
    memory_limit: str = "1g"
    cpu_limit: str = "1.0"

    @classmethod
    def from_dict(cls, values: Dict[str, str]) -> "EnvSettings":
        settings = cls()
        for name, default in asdict(settings).items():
            raw = values.get(name.upper())
            if raw is None or raw == "":
                continue
            if isinstance(default, int):
                try:
                    raw = int(raw)
                except ValueError:
                    raise ValueError(f"{name.upper()} must be an integer, got {raw!r}")
            setattr(settings, name, raw)
        return settings

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "EnvSettings":
        return cls.from_dict(load_env_file(path))

    @property
    def uses_default_password(self) -> bool:
        return self.admin_password in DEFAULT_ADMIN_PASSWORDS

    @property
    def admin_url(self) -> str:
        return f"https://{self.server_hostname}:{self.admin_ui_port}/admin"

    @property
    def client_url(self) -> str:
        return f"https://{self.server_hostname}:{self.client_ui_port}/"

    def image_ref(self, image: str) -> str:
        return f"{image}:{self.openvpn_version or 'latest'}"


ENV_EXAMPLE_TEMPLATE = """# OpenVPN Access Server 환경 설정
# 이 파일을 .env 로 복사한 뒤 값을 수정하세요

# 서버 공개 주소 (공인 IP 또는 도메인)
SERVER_HOSTNAME={{ env.server_hostname }}

# 관리자 계정
ADMIN_USERNAME={{ env.admin_username }}
ADMIN_PASSWORD={{ env.admin_password or "changeme123!" }}

# 포트
ADMIN_UI_PORT={{ env.admin_ui_port }}
CLIENT_UI_PORT={{ env.client_ui_port }}
OPENVPN_PORT={{ env.openvpn_port }}
VPN_PROTOCOL={{ env.vpn_protocol }}

# 이미지 태그
OPENVPN_VERSION={{ env.openvpn_version }}

# 시간대
TZ={{ env.tz }}

# 리소스 제한
MEMORY_LIMIT={{ env.memory_limit }}
CPU_LIMIT={{ env.cpu_limit }}
"""

COMPOSE_TEMPLATE = """services:
  openvpn-as:
    image: {{ image }}:${OPENVPN_VERSION:-latest}
    container_name: {{ container_name }}
    restart: unless-stopped
    cap_add:
      - NET_ADMIN
    devices:
      - /dev/net/tun
    env_file:
      - {{ env_file }}
    environment:
      - TZ=${TZ:-UTC}
    ports:
      - "${ADMIN_UI_PORT:-943}:943"
      - "443:443"
      - "${OPENVPN_PORT:-1194}:1194/${VPN_PROTOCOL:-udp}"
    volumes:
{% for directory in volumes %}
      - ./{{ directory.host }}:{{ directory.container }}
{% endfor %}
    deploy:
      resources:
        limits:
          memory: ${MEMORY_LIMIT:-1g}
          cpus: "${CPU_LIMIT:-1.0}"
"""


def render_env_example(settings: EnvSettings = None) -> str:
    """.env.example 내용 렌더링"""
    return Template(ENV_EXAMPLE_TEMPLATE).render(env=settings or EnvSettings())


def render_compose(container_name: str, image: str, env_file: str = ".env") -> str:
    """docker-compose.yml 내용 렌더링"""
    volumes = [
        {"host": "data/openvpn-as", "container": "/openvpn"},
        {"host": "logs", "container": "/var/log/openvpnas"},
    ]
    return Template(COMPOSE_TEMPLATE, trim_blocks=True, lstrip_blocks=True).render(
        container_name=container_name,
        image=image,
        env_file=env_file,
        volumes=volumes,
    )
