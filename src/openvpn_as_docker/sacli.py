"""
Access Server 관리 CLI(sacli) 래퍼
docker exec 를 통해 컨테이너 내부의 sacli 를 호출
"""

import json
import re
import subprocess
from typing import List
from .docker import DockerClient
from .logger import get_logger

USER_LINE = re.compile(r"^[a-zA-Z0-9_-]+\.")


def parse_usernames(output: str) -> List[str]:
    """UserPropQuery 출력에서 사용자 이름 추출

    JSON 객체면 키를, 아니면 'user.key ...' 형식 줄의 앞부분을 사용한다.
    """
    text = output.strip()
    if not text:
        return []

    try:
        data = json.loads(text)
    except ValueError:
        data = None

    if isinstance(data, dict):
        return sorted(set(data.keys()))

    names = set()
    for line in text.splitlines():
        if USER_LINE.match(line):
            names.add(line.split(".", 1)[0])
    return sorted(names)


class SacliClient:
    """sacli 호출 클래스"""

    def __init__(self, docker: DockerClient, sacli_path: str):
        self.docker = docker
        self.sacli_path = sacli_path
        self.logger = get_logger()

    def run(self, args: List[str], input: str = None) -> subprocess.CompletedProcess:
        self.logger.debug(f"sacli {args[-1] if args else ''}")
        return self.docker.exec([self.sacli_path] + list(args), input=input)

    def config_query(self) -> subprocess.CompletedProcess:
        return self.run(["ConfigQuery"])

    def user_prop_query(self) -> subprocess.CompletedProcess:
        return self.run(["UserPropQuery"])

    def version(self) -> subprocess.CompletedProcess:
        return self.run(["version"])

    def vpn_status(self) -> subprocess.CompletedProcess:
        return self.run(["VPNStatus"])

    def user_prop_put(self, user: str, key: str, value: str) -> subprocess.CompletedProcess:
        return self.run(["--user", user, "--key", key, "--value", value, "UserPropPut"])

    def user_prop_del(self, user: str) -> subprocess.CompletedProcess:
        return self.run(["--user", user, "UserPropDel"])

    def set_local_password(self, user: str, password: str) -> subprocess.CompletedProcess:
        # 비밀번호는 명령행이 아니라 stdin 으로 전달
        return self.run(["--user", user, "SetLocalPassword"], input=password + "\n")

    def list_users(self) -> List[str]:
        result = self.user_prop_query()
        if result.returncode != 0:
            raise subprocess.CalledProcessError(
                result.returncode, result.args, result.stdout, result.stderr
            )
        return parse_usernames(result.stdout)
