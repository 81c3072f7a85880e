"""
설정 관리 모듈 테스트
"""

import os
import tempfile
from pathlib import Path

from openvpn_as_docker.config import Config


def test_default_config():
    """기본 설정 테스트"""
    config = Config("/nonexistent/config.yaml")
    assert config.container.name == "openvpn-access-server"
    assert config.container.sacli_path == "/usr/local/openvpn_as/scripts/sacli"
    assert config.wait.max_attempts == 30
    assert config.wait.interval == 5
    assert config.backup.retention_days == 30


def test_config_load_yaml():
    """YAML 설정 파일 로드 테스트"""
    yaml_content = """
container:
  name: "vpn-test"

backup:
  retention_days: 7
  unknown_key: "ignored"

unknown_section:
  foo: bar
"""

    with tempfile.NamedTemporaryFile(mode='w', suffix='.yaml', delete=False) as f:
        f.write(yaml_content)
        temp_path = f.name

    try:
        config = Config(temp_path)
        assert config.container.name == "vpn-test"
        assert config.backup.retention_days == 7
        assert not hasattr(config.backup, "unknown_key")
        assert config.container.image == "openvpn/openvpn-as"
    finally:
        os.unlink(temp_path)


def test_config_load_json(tmp_path):
    """JSON 설정 파일 로드 테스트"""
    path = tmp_path / "config.json"
    path.write_text('{"wait": {"max_attempts": 10}}', encoding="utf-8")

    config = Config(str(path))
    assert config.wait.max_attempts == 10


def test_config_save(tmp_path):
    """설정 저장 테스트"""
    config = Config("/nonexistent/config.yaml")
    config.container.name = "saved-container"

    path = tmp_path / "saved.yaml"
    config.save(str(path))

    config2 = Config(str(path))
    assert config2.container.name == "saved-container"


def test_config_to_dict():
    """딕셔너리 변환 테스트"""
    data = Config("/nonexistent/config.yaml").to_dict()

    assert set(data) == {"project", "container", "wait", "backup", "health", "agent"}
    assert data["container"]["init_marker"] == "/opt/openvpn-as/init/as-init"


def test_paths_resolved_against_project_dir(config, project_dir):
    """상대 경로는 프로젝트 디렉토리 기준"""
    assert config.env_path == project_dir / ".env"
    assert config.compose_path == project_dir / "docker-compose.yml"
    assert config.backup_dir == project_dir / "backups"


def test_absolute_backup_dir(config, tmp_path):
    config.backup.dir = str(tmp_path / "elsewhere")
    assert config.backup_dir == tmp_path / "elsewhere"


def test_create_sample_is_loadable(tmp_path):
    """샘플 설정 파일이 다시 로드되는지"""
    path = tmp_path / "sample" / "config.yaml"
    Config("/nonexistent/config.yaml").create_sample(str(path))

    config = Config(str(path))
    assert config.container.name == "openvpn-access-server"
    assert config.project.directories == ["config", "data", "data/openvpn-as", "logs"]
