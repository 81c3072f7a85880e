"""
설정 관리 모듈
YAML/JSON 기반 도구 설정 파일 관리 및 기본값 제공
"""

import os
import yaml
import json
from pathlib import Path
from typing import Dict, Any, Optional
from dataclasses import dataclass, field, asdict


@dataclass
class ProjectConfig:
    """배포 프로젝트 디렉토리 설정"""
    dir: str = "."
    env_file: str = ".env"
    env_example: str = ".env.example"
    compose_file: str = "docker-compose.yml"
    directories: list = field(default_factory=lambda: ["config", "data", "data/openvpn-as", "logs"])


@dataclass
class ContainerConfig:
    """Access Server 컨테이너 설정"""
    name: str = "openvpn-access-server"
    image: str = "openvpn/openvpn-as"
    sacli_path: str = "/usr/local/openvpn_as/scripts/sacli"
    init_marker: str = "/opt/openvpn-as/init/as-init"
    service: str = "openvpnas"
    config_path: str = "/opt/openvpn-as/etc"
    data_path: str = "/opt/openvpn-as/tmp"
    log_path: str = "/var/log"


@dataclass
class WaitConfig:
    """컨테이너 준비 대기 설정"""
    max_attempts: int = 30
    interval: int = 5


@dataclass
class BackupConfig:
    """백업 설정"""
    dir: str = "backups"
    retention_days: int = 30


@dataclass
class HealthConfig:
    """헬스체크 임계값"""
    disk_threshold: int = 90
    memory_threshold: int = 90
    report_dir: str = "~/.openvpn-as-docker/reports"


@dataclass
class AgentConfig:
    """도구 자체 설정"""
    log_dir: str = "~/.openvpn-as-docker/logs"
    log_level: str = "INFO"


class Config:
    """전체 설정 관리 클래스"""

    DEFAULT_CONFIG_PATHS = [
        "/etc/openvpn-as-docker/config.yaml",
        "~/.openvpn-as-docker/config.yaml",
        "./config/config.yaml",
        "./config.yaml",
    ]

    SECTIONS = ("project", "container", "wait", "backup", "health", "agent")

    def __init__(self, config_path: Optional[str] = None):
        self.config_path = config_path
        self.project = ProjectConfig()
        self.container = ContainerConfig()
        self.wait = WaitConfig()
        self.backup = BackupConfig()
        self.health = HealthConfig()
        self.agent = AgentConfig()

        if config_path:
            self.load(config_path)
        else:
            self._load_from_default_paths()

    @classmethod
    def from_yaml(cls, path: str) -> "Config":
        return cls(path)

    def _load_from_default_paths(self):
        """기본 경로에서 설정 파일 로드"""
        for path in self.DEFAULT_CONFIG_PATHS:
            expanded_path = os.path.expanduser(path)
            if os.path.exists(expanded_path):
                self.load(expanded_path)
                return

    def load(self, path: str):
        """설정 파일 로드"""
        path = os.path.expanduser(path)
        if not os.path.exists(path):
            return

        with open(path, 'r', encoding='utf-8') as f:
            if path.endswith('.json'):
                data = json.load(f)
            else:
                data = yaml.safe_load(f) or {}

        self._update_from_dict(data)
        self.config_path = path

    def _update_from_dict(self, data: Dict[str, Any]):
        """딕셔너리에서 설정 업데이트 (알 수 없는 키는 무시)"""
        for section in self.SECTIONS:
            values = data.get(section)
            if not isinstance(values, dict):
                continue
            target = getattr(self, section)
            for key, value in values.items():
                if hasattr(target, key):
                    setattr(target, key, value)

    def project_path(self, *parts: str) -> Path:
        """프로젝트 디렉토리 기준 경로"""
        return Path(os.path.expanduser(self.project.dir)).joinpath(*parts)

    @property
    def env_path(self) -> Path:
        return self.project_path(self.project.env_file)

    @property
    def env_example_path(self) -> Path:
        return self.project_path(self.project.env_example)

    @property
    def compose_path(self) -> Path:
        return self.project_path(self.project.compose_file)

    @property
    def backup_dir(self) -> Path:
        path = Path(os.path.expanduser(self.backup.dir))
        if path.is_absolute():
            return path
        return self.project_path(self.backup.dir)

    def to_dict(self) -> Dict[str, Any]:
        """딕셔너리로 변환"""
        return {section: asdict(getattr(self, section)) for section in self.SECTIONS}

    def save(self, path: Optional[str] = None):
        """설정 파일 저장"""
        save_path = path or self.config_path or self.DEFAULT_CONFIG_PATHS[1]
        save_path = os.path.expanduser(save_path)

        directory = os.path.dirname(save_path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        with open(save_path, 'w', encoding='utf-8') as f:
            if save_path.endswith('.json'):
                json.dump(self.to_dict(), f, indent=2)
            else:
                yaml.dump(self.to_dict(), f, default_flow_style=False, allow_unicode=True)

    def create_sample(self, output_path: str):
        """샘플 설정 파일 생성"""
        template = """# OpenVPN Access Server Docker 도구 설정 파일
# 이 파일을 복사하여 config.yaml로 사용하세요

# 배포 프로젝트 (docker-compose.yml, .env 가 있는 디렉토리)
project:
  dir: "."
  env_file: ".env"
  env_example: ".env.example"
  compose_file: "docker-compose.yml"
  directories:
    - "config"
    - "data"
    - "data/openvpn-as"
    - "logs"

# 컨테이너
container:
  name: "openvpn-access-server"
  image: "openvpn/openvpn-as"
  sacli_path: "/usr/local/openvpn_as/scripts/sacli"
  init_marker: "/opt/openvpn-as/init/as-init"
  service: "openvpnas"
  config_path: "/opt/openvpn-as/etc"
  data_path: "/opt/openvpn-as/tmp"
  log_path: "/var/log"

# 컨테이너 준비 대기 (max_attempts x interval 초)
wait:
  max_attempts: 30
  interval: 5

# 백업
backup:
  dir: "backups"
  retention_days: 30  # 0 이하면 오래된 백업을 삭제하지 않음

# 헬스체크 임계값 (%)
health:
  disk_threshold: 90
  memory_threshold: 90
  report_dir: "~/.openvpn-as-docker/reports"

# 도구 로그
agent:
  log_dir: "~/.openvpn-as-docker/logs"
  log_level: "INFO"  # DEBUG, INFO, WARNING, ERROR
"""

        directory = os.path.dirname(output_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(output_path, 'w', encoding='utf-8') as f:
            f.write(template)
