"""
초기 설치 모듈
디렉토리 생성, .env 준비, 이미지 pull, 컨테이너 시작, 준비 대기
"""

import os
import shutil
import subprocess
from typing import Callable, Optional, Tuple
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm
from rich.table import Table
from .config import Config
from .docker import DockerClient
from .envfile import EnvSettings, render_compose, render_env_example
from .logger import get_logger

console = Console()


class SetupManager:
    """Access Server 초기 설치 오케스트레이터"""

    def __init__(self, config: Config, docker: DockerClient, debug: bool = False,
                 assume_yes: bool = False, confirm: Optional[Callable[[str], bool]] = None):
        self.config = config
        self.docker = docker
        self.debug = debug
        self.assume_yes = assume_yes
        self.confirm = confirm or (lambda question: Confirm.ask(question, default=False))
        self.logger = get_logger()
        self.execution_log = []
        self.env = EnvSettings()

    def log_step(self, step: str, status: str, message: str = ""):
        self.execution_log.append({
            "step": step,
            "status": status,
            "message": message
        })

    def show_summary(self):
        """실행 결과 요약 표시"""
        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("단계", style="cyan", width=24)
        table.add_column("상태", width=6)
        table.add_column("메시지", width=40)

        for log in self.execution_log:
            ok = log["status"] == "success"
            color = "green" if ok else "red"
            table.add_row(log["step"], f"[{color}]{'✓' if ok else '✗'}[/{color}]", log["message"])

        console.print(table)

        log_files = self.logger.get_log_files()
        console.print(f"\n[bold]로그 파일:[/bold]")
        console.print(f"  Main: {log_files['main_log']}")
        console.print(f"  Error: {log_files['error_log']}")

    def check_docker(self) -> Tuple[bool, str]:
        console.print("[blue]Docker 설치 확인 중...[/blue]")
        if not self.docker.is_installed():
            return False, "Docker가 설치되어 있지 않습니다. 먼저 Docker를 설치하세요."
        if not self.docker.is_daemon_running():
            return False, "Docker가 실행 중이 아닙니다. 먼저 Docker를 시작하세요."
        console.print("[green]✓ Docker 설치 및 실행 확인[/green]")
        return True, "실행 중"

    def check_compose(self) -> Tuple[bool, str]:
        console.print("[blue]Docker Compose 확인 중...[/blue]")
        cmd = self.docker.compose_command()
        if cmd is None:
            return False, "Docker Compose가 설치되어 있지 않습니다."
        console.print(f"[green]✓ Docker Compose 사용 가능 ({' '.join(cmd)})[/green]")
        return True, " ".join(cmd)

    def create_directories(self) -> Tuple[bool, str]:
        console.print("[blue]필요한 디렉토리 생성 중...[/blue]")
        for directory in self.config.project.directories:
            path = self.config.project_path(directory)
            path.mkdir(parents=True, exist_ok=True)
            os.chmod(path, 0o755)
            self.logger.debug(f"Directory ready: {path}")
        console.print("[green]✓ 디렉토리 생성 완료[/green]")
        return True, f"{len(self.config.project.directories)}개"

    def setup_env_file(self) -> Tuple[bool, str]:
        console.print("[blue]환경 파일 준비 중...[/blue]")
        env_path = self.config.env_path
        example_path = self.config.env_example_path

        if env_path.exists():
            console.print("[green].env 파일이 이미 존재합니다.[/green]")
            return True, "기존 파일 사용"

        if not example_path.exists():
            return False, f"{example_path.name} 파일을 찾을 수 없습니다!"

        shutil.copyfile(example_path, env_path)
        self.logger.info(f"Created {env_path} from {example_path}")
        console.print(f"[yellow]{example_path.name} 에서 .env 파일을 생성했습니다.[/yellow]")
        console.print("[yellow].env 파일을 편집하여 설정을 변경하세요![/yellow]")
        return True, ".env.example 복사"

    def validate_env(self) -> Tuple[bool, str]:
        console.print("[blue]환경 설정 검증 중...[/blue]")
        try:
            self.env = EnvSettings.from_file(self.config.env_path)
        except ValueError as e:
            return False, str(e)

        if self.env.uses_default_password:
            console.print("[red]경고: 기본 관리자 비밀번호를 사용하고 있습니다![/red]")
            console.print("[yellow]보안을 위해 .env 파일의 ADMIN_PASSWORD를 변경하세요.[/yellow]")
            self.logger.warning("Default admin password in use")
            if not self.assume_yes and not self.confirm("그래도 계속하시겠습니까?"):
                return False, "기본 비밀번호로 인해 중단"

        if self.env.server_hostname == "localhost":
            console.print("[yellow]경고: SERVER_HOSTNAME 이 localhost 로 설정되어 있습니다.[/yellow]")
            console.print("[yellow]로컬 테스트에서만 동작합니다. 원격 접속에는 공인 IP/도메인을 설정하세요.[/yellow]")
            self.logger.warning("SERVER_HOSTNAME is localhost")

        console.print("[green]✓ 환경 설정 검증 완료[/green]")
        return True, "완료"

    def pull_image(self) -> Tuple[bool, str]:
        image = self.env.image_ref(self.config.container.image)
        console.print(f"[blue]이미지 받는 중: {image}[/blue]")
        try:
            self.docker.pull(image)
        except subprocess.CalledProcessError as e:
            return False, f"이미지 pull 실패 (exit {e.returncode})"
        console.print("[green]✓ 이미지 pull 완료[/green]")
        return True, image

    def start_container(self) -> Tuple[bool, str]:
        console.print("[blue]컨테이너 시작 중...[/blue]")
        try:
            self.docker.compose_up()
        except (subprocess.CalledProcessError, FileNotFoundError) as e:
            return False, f"컨테이너 시작 실패: {e}"
        console.print("[green]✓ 컨테이너 시작 완료[/green]")
        return True, "up -d"

    def wait_for_container(self) -> Tuple[bool, str]:
        console.print("[blue]Access Server 준비 대기 중...[/blue]")
        ready = self.docker.wait_until_ready(
            self.config.container.init_marker,
            max_attempts=self.config.wait.max_attempts,
            interval=self.config.wait.interval,
            on_attempt=lambda attempt: console.print(".", end="")
        )
        if not ready:
            console.print()
            console.print(f"[yellow]컨테이너 로그 확인: docker logs {self.config.container.name}[/yellow]")
            return False, "준비 대기 시간 초과"
        console.print("\n[green]✓ Access Server 준비 완료![/green]")
        return True, "준비 완료"

    def show_connection_info(self):
        env = self.env
        name = self.config.container.name

        console.print()
        console.print("[bold blue]접속 정보:[/bold blue]")
        console.print(f"[yellow]  Admin Web UI: {env.admin_url}[/yellow]")
        console.print(f"[yellow]  Client Web UI: {env.client_url}[/yellow]")
        console.print(f"[yellow]  Username: {env.admin_username}[/yellow]")
        console.print(f"[yellow]  Password: {env.admin_password}[/yellow]")
        console.print()
        console.print("[bold blue]OpenVPN 연결:[/bold blue]")
        console.print(f"[yellow]  Server: {env.server_hostname}[/yellow]")
        console.print(f"[yellow]  Port: {env.openvpn_port}[/yellow]")
        console.print(f"[yellow]  Protocol: {env.vpn_protocol}[/yellow]")
        console.print()
        console.print("[bold green]다음 단계:[/bold green]")
        console.print("[yellow]  1. Admin Web UI 에서 VPN 서버 설정[/yellow]")
        console.print("[yellow]  2. Admin 화면에서 사용자 계정 생성[/yellow]")
        console.print("[yellow]  3. 클라이언트 설정 파일 다운로드[/yellow]")
        console.print("[yellow]  4. OpenVPN 클라이언트에 설정 가져오기[/yellow]")
        console.print()
        console.print("[bold blue]유용한 명령어:[/bold blue]")
        console.print(f"[yellow]  로그 보기: ovpn-as logs (docker logs {name})[/yellow]")
        console.print("[yellow]  서버 중지: ovpn-as stop[/yellow]")
        console.print("[yellow]  서버 재시작: ovpn-as restart[/yellow]")
        console.print("[yellow]  서버 업데이트: ovpn-as update[/yellow]")

    def run(self) -> bool:
        """설치 단계를 순서대로 실행 (첫 실패에서 중단)"""
        console.print(Panel.fit(
            "[bold green]OpenVPN Access Server Docker Setup[/bold green]",
            border_style="green"
        ))
        self.logger.info("=== Setup started ===")

        steps = [
            ("Docker 확인", self.check_docker),
            ("Compose 확인", self.check_compose),
            ("디렉토리 생성", self.create_directories),
            ("환경 파일", self.setup_env_file),
            ("환경 검증", self.validate_env),
            ("이미지 pull", self.pull_image),
            ("컨테이너 시작", self.start_container),
            ("준비 대기", self.wait_for_container),
        ]

        try:
            for name, step in steps:
                success, msg = step()
                self.log_step(name, "success" if success else "failed", msg)
                if not success:
                    console.print(f"[red]✗ {msg}[/red]")
                    self.logger.error(f"Setup step '{name}' failed: {msg}")
                    self.show_summary()
                    return False
        except KeyboardInterrupt:
            console.print("\n[yellow]사용자에 의해 중단되었습니다.[/yellow]")
            self.logger.warning("Setup interrupted by user")
            return False
        except Exception as e:
            console.print(f"\n[red]예상치 못한 오류 발생: {str(e)}[/red]")
            self.logger.exception("Unexpected error during setup")
            self.show_summary()
            return False

        console.print("\n[bold green]=== OpenVPN Access Server 설치 완료 ===[/bold green]")
        self.show_connection_info()
        self.show_summary()
        self.logger.info("=== Setup completed successfully ===")
        return True


def write_templates(config: Config, force: bool = False) -> dict:
    """.env.example 과 docker-compose.yml 생성

    기존 파일은 force 가 아니면 그대로 둔다. 생성 여부를 반환한다.
    """
    written = {}
    targets = {
        "env_example": (config.env_example_path, lambda: render_env_example()),
        "compose": (config.compose_path, lambda: render_compose(
            config.container.name, config.container.image, config.project.env_file)),
    }

    for key, (path, render) in targets.items():
        if path.exists() and not force:
            written[key] = None
            continue
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(render(), encoding="utf-8")
        get_logger().info(f"Rendered {path}")
        written[key] = path
    return written
