"""
컨테이너 엔진(docker / docker compose) CLI 래퍼
모든 호출은 단발성 외부 명령 실행
"""

import subprocess
import time
from pathlib import Path
from typing import Callable, List, Optional, Union
from .logger import get_logger


class DockerClient:
    """docker CLI 호출 클래스"""

    def __init__(self, container_name: str, project_dir: Union[str, Path] = ".", debug: bool = False):
        self.container_name = container_name
        self.project_dir = str(project_dir)
        self.debug = debug
        self.logger = get_logger()
        self._compose_cmd = None

    def _run(self, cmd: List[str], capture: bool = True, check: bool = False,
             input: Optional[str] = None, cwd: Optional[str] = None,
             timeout: Optional[int] = None) -> subprocess.CompletedProcess:
        self.logger.debug(f"Running: {' '.join(cmd)}")
        return subprocess.run(
            cmd,
            capture_output=capture,
            text=True,
            check=check,
            input=input,
            cwd=cwd,
            timeout=timeout
        )

    def run(self, args: List[str], **kwargs) -> subprocess.CompletedProcess:
        """docker <args> 실행"""
        return self._run(["docker"] + list(args), **kwargs)

    # 설치 / 데몬 확인

    def command_exists(self, name: str) -> bool:
        result = subprocess.run(["which", name], capture_output=True)
        return result.returncode == 0

    def is_installed(self) -> bool:
        installed = self.command_exists("docker")
        self.logger.debug(f"Docker installed: {installed}")
        return installed

    def is_daemon_running(self) -> bool:
        return self.run(["info"]).returncode == 0

    def compose_command(self) -> Optional[List[str]]:
        """사용 가능한 compose 명령 (docker-compose 우선)"""
        if self._compose_cmd is None:
            if self.command_exists("docker-compose"):
                self._compose_cmd = ["docker-compose"]
            elif self.run(["compose", "version"]).returncode == 0:
                self._compose_cmd = ["docker", "compose"]
        return self._compose_cmd

    # 컨테이너 상태

    def container_names(self, include_stopped: bool = False) -> List[str]:
        args = ["ps", "--format", "{{.Names}}"]
        if include_stopped:
            args.insert(1, "-a")
        result = self.run(args)
        if result.returncode != 0:
            return []
        return [line.strip() for line in result.stdout.splitlines() if line.strip()]

    def is_running(self) -> bool:
        return self.container_name in self.container_names()

    def exists(self) -> bool:
        return self.container_name in self.container_names(include_stopped=True)

    # 이미지 / compose

    def pull(self, image: str) -> subprocess.CompletedProcess:
        self.logger.info(f"Pulling image {image}")
        return self.run(["pull", image], capture=False, check=True)

    def compose(self, args: List[str], check: bool = True) -> subprocess.CompletedProcess:
        """프로젝트 디렉토리에서 compose 명령 실행"""
        cmd = self.compose_command()
        if cmd is None:
            raise FileNotFoundError("docker-compose / docker compose not available")
        return self._run(cmd + list(args), capture=False, check=check, cwd=self.project_dir)

    def compose_up(self) -> subprocess.CompletedProcess:
        return self.compose(["up", "-d"])

    def compose_down(self, volumes: bool = False) -> subprocess.CompletedProcess:
        return self.compose(["down", "-v"] if volumes else ["down"])

    def compose_restart(self) -> subprocess.CompletedProcess:
        return self.compose(["restart"])

    def compose_pull(self) -> subprocess.CompletedProcess:
        return self.compose(["pull"])

    def compose_config(self) -> subprocess.CompletedProcess:
        cmd = self.compose_command()
        if cmd is None:
            raise FileNotFoundError("docker-compose / docker compose not available")
        return self._run(cmd + ["config"], cwd=self.project_dir)

    # 컨테이너 조작

    def exec(self, args: List[str], interactive: bool = False, tty: bool = False,
             input: Optional[str] = None, capture: bool = True,
             check: bool = False) -> subprocess.CompletedProcess:
        cmd = ["exec"]
        if interactive or input is not None:
            cmd.append("-i")
        if tty:
            cmd.append("-t")
        cmd.append(self.container_name)
        return self.run(cmd + list(args), input=input, capture=capture, check=check)

    def copy_from(self, src: str, dest: Union[str, Path]) -> subprocess.CompletedProcess:
        return self.run(["cp", f"{self.container_name}:{src}", str(dest)])

    def copy_to(self, src: Union[str, Path], dest: str) -> subprocess.CompletedProcess:
        return self.run(["cp", str(src), f"{self.container_name}:{dest}"], check=True)

    def stop(self) -> subprocess.CompletedProcess:
        return self.run(["stop", self.container_name], check=True)

    def logs(self, follow: bool = False, tail: Optional[int] = None) -> int:
        """로그 출력 (터미널로 스트리밍)"""
        args = ["logs"]
        if follow:
            args.append("-f")
        if tail is not None:
            args.extend(["--tail", str(tail)])
        args.append(self.container_name)
        return self.run(args, capture=False).returncode

    def stats(self, fmt: str) -> subprocess.CompletedProcess:
        return self.run(["stats", self.container_name, "--no-stream", "--format", fmt])

    def inspect(self, fmt: str) -> subprocess.CompletedProcess:
        return self.run(["inspect", self.container_name, f"--format={fmt}"])

    def ps_table(self, fmt: str) -> subprocess.CompletedProcess:
        return self.run(["ps", "--filter", f"name={self.container_name}", "--format", fmt])

    def system_prune(self) -> subprocess.CompletedProcess:
        return self.run(["system", "prune", "-f"], capture=False, check=True)

    def volume_prune(self) -> subprocess.CompletedProcess:
        return self.run(["volume", "prune", "-f"], capture=False)

    # 준비 상태 대기

    def wait_until_ready(self, marker: str, max_attempts: int = 30, interval: int = 5,
                         on_attempt: Optional[Callable[[int], None]] = None) -> bool:
        """컨테이너 내부 마커 파일이 생길 때까지 고정 횟수 폴링"""
        self.logger.info(f"Waiting for {marker} in {self.container_name} "
                         f"(max {max_attempts} x {interval}s)")
        for attempt in range(1, max_attempts + 1):
            if self.exec(["test", "-f", marker]).returncode == 0:
                self.logger.info(f"Container ready after {attempt} attempt(s)")
                return True
            if on_attempt:
                on_attempt(attempt)
            if attempt < max_attempts:
                time.sleep(interval)

        self.logger.error(f"Timeout waiting for {self.container_name} to be ready")
        return False
