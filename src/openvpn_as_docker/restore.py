"""
복원 모듈
백업 디렉토리/아카이브를 검증한 뒤 컨테이너에 설정과 데이터를 되돌림
"""

import shutil
import subprocess
import tarfile
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Tuple
from rich.console import Console
from rich.prompt import Confirm
from .config import Config
from .docker import DockerClient
from .envfile import EnvSettings
from .logger import get_logger

console = Console()

ARCHIVE_SUFFIX = ".tar.gz"


class RestoreCancelled(Exception):
    """사용자가 복원을 취소함"""


@dataclass
class RestoreOptions:
    """복원 옵션"""
    backup_path: Path
    force: bool = False
    config_only: bool = False


class RestoreManager:
    """복원 관리 클래스"""

    def __init__(self, config: Config, docker: DockerClient, options: RestoreOptions,
                 confirm: Optional[Callable[[str], bool]] = None):
        self.config = config
        self.docker = docker
        self.options = options
        self.container = config.container
        self.confirm = confirm or (lambda question: Confirm.ask(question, default=False))
        self.logger = get_logger()
        self.extracted_path: Optional[Path] = None

    def check_container(self) -> Tuple[bool, str]:
        if not self.docker.exists():
            console.print(f"[red]컨테이너 {self.container.name} 가 존재하지 않습니다![/red]")
            console.print("[yellow]먼저 컨테이너를 생성하세요: ovpn-as start[/yellow]")
            return False, "컨테이너 없음"
        return True, "존재"

    def extract_backup(self, backup_path: Path) -> Path:
        """아카이브면 같은 위치의 임시 디렉토리에 풀고 백업 디렉토리 경로 반환

        아카이브 최상위가 디렉토리 하나면 그 디렉토리를, 아니면 임시 디렉토리 자체를 쓴다.
        """
        if not backup_path.name.endswith(ARCHIVE_SUFFIX):
            return backup_path

        console.print("[blue]백업 아카이브 압축 해제 중...[/blue]")
        self.extracted_path = Path(tempfile.mkdtemp(prefix=".restore-", dir=backup_path.parent))
        with tarfile.open(backup_path, "r:gz") as tar:
            # 절대 경로와 상위 경로 멤버는 거부, 링크는 그대로 유지
            tar.extractall(self.extracted_path, filter="tar")

        entries = list(self.extracted_path.iterdir())
        restore_path = entries[0] if len(entries) == 1 and entries[0].is_dir() else self.extracted_path

        console.print(f"[green]✓ 압축 해제 완료: {restore_path}[/green]")
        self.logger.info(f"Extracted {backup_path} to {restore_path}")
        return restore_path

    def validate_backup(self, restore_path: Path) -> Tuple[bool, str]:
        console.print("[blue]백업 검증 중...[/blue]")

        if not restore_path.is_dir():
            return False, f"백업 디렉토리가 존재하지 않습니다: {restore_path}"

        has_config = (restore_path / "etc").is_dir() or (restore_path / "config_database.txt").is_file()
        if not has_config:
            return False, "백업에서 설정 파일을 찾을 수 없습니다!"

        metadata = restore_path / "backup_metadata.txt"
        if metadata.is_file():
            console.print("[green]백업 메타데이터:[/green]")
            with open(metadata, "r", encoding="utf-8") as f:
                for _, line in zip(range(10), f):
                    console.print(line.rstrip("\n"), markup=False, highlight=False)
            console.print()

        console.print("[green]✓ 백업 검증 통과[/green]")
        return True, "통과"

    def confirm_restore(self):
        if self.options.force:
            return
        console.print("[yellow]경고: 현재 OpenVPN 설정을 덮어씁니다![/yellow]")
        console.print("[yellow]복원 중 컨테이너가 중지되었다가 다시 시작됩니다.[/yellow]")
        if not self.confirm("계속하시겠습니까?"):
            raise RestoreCancelled()

    def stop_container(self):
        console.print("[blue]컨테이너 중지 중...[/blue]")
        if self.docker.is_running():
            self.docker.stop()
            console.print("[green]✓ 컨테이너 중지[/green]")
        else:
            console.print("[yellow]컨테이너가 실행 중이 아니었습니다.[/yellow]")

    def restore_configuration(self, restore_path: Path):
        console.print("[blue]설정 복원 중...[/blue]")

        etc_dir = restore_path / "etc"
        if etc_dir.is_dir():
            self.docker.copy_to(f"{etc_dir}/.", f"{self.container.config_path}/")
            console.print("[green]✓ 설정 디렉토리 복원[/green]")

        # sacli 텍스트 덤프는 자동으로 가져오지 않는다
        for filename, label in (("config_database.txt", "설정 데이터베이스"),
                                ("user_database.txt", "사용자 데이터베이스")):
            dump = restore_path / filename
            if dump.is_file():
                console.print(f"[yellow]참고: {label} 복원은 수동 작업이 필요합니다.[/yellow]")
                console.print(f"[yellow]파일 위치: {dump}[/yellow]")

    def restore_data(self, restore_path: Path):
        if self.options.config_only:
            console.print("[yellow]데이터 복원 건너뜀 (config-only 모드)[/yellow]")
            return

        console.print("[blue]데이터 복원 중...[/blue]")

        tmp_dir = restore_path / "tmp"
        if tmp_dir.is_dir():
            self.docker.copy_to(f"{tmp_dir}/.", f"{self.container.data_path}/")
            console.print("[green]✓ 런타임 데이터 복원[/green]")

        logs_dir = restore_path / "logs"
        if logs_dir.is_dir():
            console.print("[yellow]백업에 로그가 있지만 복원하지 않습니다.[/yellow]")
            console.print(f"[yellow]로그 위치: {logs_dir}[/yellow]")

    def start_container(self):
        console.print("[blue]컨테이너 시작 중...[/blue]")
        self.docker.compose_up()
        console.print("[green]✓ 컨테이너 시작[/green]")

    def wait_for_container(self) -> bool:
        console.print("[blue]Access Server 준비 대기 중...[/blue]")
        ready = self.docker.wait_until_ready(
            self.container.init_marker,
            max_attempts=self.config.wait.max_attempts,
            interval=self.config.wait.interval,
            on_attempt=lambda attempt: console.print(".", end="")
        )
        if ready:
            console.print("\n[green]✓ Access Server 준비 완료![/green]")
        else:
            console.print()
            console.print("[yellow]경고: Access Server 준비 대기 시간 초과[/yellow]")
            console.print(f"[yellow]컨테이너 로그 확인: docker logs {self.container.name}[/yellow]")
        return ready

    def show_summary(self, restore_path: Path):
        env = EnvSettings.from_file(self.config.env_path)

        console.print("\n[bold green]=== 복원 요약 ===[/bold green]")
        console.print(f"[yellow]백업 원본: {restore_path}[/yellow]")
        console.print(f"[yellow]컨테이너: {self.container.name}[/yellow]")
        console.print(f"[yellow]Config Only: {str(self.options.config_only).lower()}[/yellow]")
        console.print()
        console.print("[bold blue]접속 정보:[/bold blue]")
        console.print(f"[yellow]  Admin Web UI: {env.admin_url}[/yellow]")
        console.print(f"[yellow]  Client Web UI: {env.client_url}[/yellow]")
        console.print("[bold green]복원이 완료되었습니다![/bold green]")
        console.print("[yellow]Admin Web UI 에서 설정을 확인하세요.[/yellow]")

    def cleanup(self):
        """압축 해제한 임시 디렉토리 삭제"""
        if self.extracted_path:
            console.print("[blue]압축 해제 파일 정리 중...[/blue]")
            shutil.rmtree(self.extracted_path, ignore_errors=True)
            self.extracted_path = None

    def run(self) -> Tuple[bool, str]:
        """복원 실행. 취소도 성공(True)으로 취급"""
        console.print("[bold green]=== OpenVPN Access Server 복원 ===[/bold green]")
        self.logger.info(f"=== Restore started from {self.options.backup_path} ===")

        ok, msg = self.check_container()
        if not ok:
            self.logger.error(f"Container {self.container.name} does not exist")
            return False, msg

        try:
            restore_path = self.extract_backup(Path(self.options.backup_path))

            ok, msg = self.validate_backup(restore_path)
            if not ok:
                console.print(f"[red]{msg}[/red]")
                self.logger.error(f"Backup validation failed: {msg}")
                return False, msg

            self.confirm_restore()

            self.stop_container()
            self.restore_configuration(restore_path)
            self.restore_data(restore_path)
            self.start_container()

            if self.wait_for_container():
                self.show_summary(restore_path)
            else:
                console.print("[yellow]복원은 완료되었지만 컨테이너에 수동 조치가 필요할 수 있습니다.[/yellow]")
                self.logger.warning("Restore completed but container is not ready")

            self.logger.info("=== Restore completed ===")
            return True, "복원 완료"

        except RestoreCancelled:
            console.print("[blue]복원이 취소되었습니다.[/blue]")
            self.logger.info("Restore cancelled by user")
            return True, "취소됨"
        except (subprocess.CalledProcessError, FileNotFoundError, tarfile.TarError) as e:
            console.print(f"[red]✗ 복원 실패: {e}[/red]")
            self.logger.error(f"Restore failed: {e}")
            return False, str(e)
        finally:
            self.cleanup()
