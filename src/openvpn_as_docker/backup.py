"""
백업 모듈
컨테이너에서 설정/데이터를 복사하고 sacli 로 설정 DB 를 내보냄
"""

import shutil
import tarfile
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional, Tuple
from rich.console import Console
from .config import Config
from .docker import DockerClient
from .logger import get_logger
from .sacli import SacliClient

console = Console()


@dataclass
class BackupOptions:
    """백업 옵션"""
    backup_dir: Path
    compress: bool = False
    config_only: bool = False
    retention_days: int = 30


def format_size(num_bytes: int) -> str:
    """du -h 형식의 크기 문자열"""
    size = float(num_bytes)
    for unit in ("B", "K", "M", "G"):
        if size < 1024:
            return f"{size:.0f}{unit}" if unit == "B" else f"{size:.1f}{unit}"
        size /= 1024
    return f"{size:.1f}T"


def directory_stats(path: Path) -> Tuple[int, int]:
    """(총 바이트, 파일 수)"""
    files = [p for p in path.rglob("*") if p.is_file()]
    return sum(p.stat().st_size for p in files), len(files)


class BackupManager:
    """백업 관리 클래스"""

    def __init__(self, config: Config, docker: DockerClient, sacli: SacliClient, options: BackupOptions):
        self.config = config
        self.docker = docker
        self.sacli = sacli
        self.options = options
        self.container = config.container
        self.logger = get_logger()
        self.warnings = []

    def _warn(self, message: str):
        self.warnings.append(message)
        console.print(f"[yellow]경고: {message}[/yellow]")
        self.logger.warning(message)

    def check_container(self) -> Tuple[bool, str]:
        if not self.docker.is_running():
            console.print(f"[red]컨테이너 {self.container.name} 가 실행 중이 아닙니다![/red]")
            console.print("[yellow]먼저 컨테이너를 시작하세요: ovpn-as start[/yellow]")
            return False, "컨테이너 미실행"
        return True, "실행 중"

    def create_backup_dir(self, now: Optional[datetime] = None) -> Path:
        timestamp = (now or datetime.now()).strftime("%Y%m%d_%H%M%S")
        path = Path(self.options.backup_dir) / timestamp
        path.mkdir(parents=True, exist_ok=True)
        return path

    def _dump(self, result, target: Path, what: str):
        if result.returncode == 0:
            target.write_text(result.stdout, encoding="utf-8")
        else:
            self._warn(f"{what} 백업 실패")

    def backup_configuration(self, backup_path: Path):
        console.print("[blue]설정 백업 중...[/blue]")

        if self.docker.copy_from(self.container.config_path, backup_path).returncode != 0:
            self._warn(f"{self.container.config_path} 백업 실패")

        self._dump(self.sacli.config_query(), backup_path / "config_database.txt", "설정 데이터베이스")
        self._dump(self.sacli.user_prop_query(), backup_path / "user_database.txt", "사용자 데이터베이스")

        console.print("[green]✓ 설정 백업 완료[/green]")

    def backup_data(self, backup_path: Path):
        if self.options.config_only:
            console.print("[yellow]데이터 백업 건너뜀 (config-only 모드)[/yellow]")
            return

        console.print("[blue]데이터 백업 중...[/blue]")

        if self.docker.copy_from(self.container.data_path, backup_path).returncode != 0:
            self._warn(f"{self.container.data_path} 백업 실패")

        if self.docker.copy_from(self.container.log_path, backup_path / "logs").returncode != 0:
            self._warn("로그 백업 실패")

        console.print("[green]✓ 데이터 백업 완료[/green]")

    def create_metadata(self, backup_path: Path, now: Optional[datetime] = None) -> Path:
        console.print("[blue]백업 메타데이터 생성 중...[/blue]")

        def query(result, fallback: str) -> str:
            output = result.stdout.strip() if result.returncode == 0 else ""
            return output or fallback

        image = query(self.docker.inspect("Image: {{.Config.Image}}"), "Image: Unknown")
        created = query(self.docker.inspect("Created: {{.Created}}"), "Created: Unknown")
        version = query(self.sacli.version(), "Version: Unknown")

        contents = sorted(p.name for p in backup_path.rglob("*") if p.is_file())

        lines = [
            "OpenVPN Access Server Backup Metadata",
            "======================================",
            f"Backup Date: {(now or datetime.now()).strftime('%a %b %d %H:%M:%S %Y')}",
            f"Backup Path: {backup_path}",
            f"Container Name: {self.container.name}",
            f"Config Only: {str(self.options.config_only).lower()}",
            f"Compressed: {str(self.options.compress).lower()}",
            "",
            "Container Information:",
            image,
            created,
            "",
            "OpenVPN Version:",
            version,
            "",
            "Backup Contents:",
        ] + contents

        metadata_file = backup_path / "backup_metadata.txt"
        metadata_file.write_text("\n".join(lines) + "\n", encoding="utf-8")
        console.print("[green]✓ 메타데이터 생성 완료[/green]")
        return metadata_file

    def compress_backup(self, backup_path: Path) -> Path:
        """<이름>.tar.gz 로 압축하고 원본 디렉토리 삭제"""
        console.print("[blue]백업 압축 중...[/blue]")
        archive = backup_path.parent / f"{backup_path.name}.tar.gz"
        with tarfile.open(archive, "w:gz") as tar:
            tar.add(backup_path, arcname=backup_path.name)
        shutil.rmtree(backup_path)
        console.print(f"[green]✓ 백업 압축 완료: {archive}[/green]")
        return archive

    def cleanup_old_backups(self, now: Optional[float] = None) -> list:
        """보관 기간이 지난 백업 디렉토리(20*)와 아카이브(*.tar.gz) 삭제"""
        days = int(self.options.retention_days)
        if days <= 0:
            return []

        console.print(f"[blue]{days}일 이상 지난 백업 정리 중...[/blue]")
        now = now if now is not None else time.time()
        removed = []

        for entry in Path(self.options.backup_dir).iterdir():
            try:
                # find -mtime +N 과 같은 일 단위 비교
                if (now - entry.stat().st_mtime) // 86400 <= days:
                    continue
                if entry.is_dir() and entry.name.startswith("20"):
                    shutil.rmtree(entry)
                    removed.append(entry)
                elif entry.is_file() and entry.name.endswith(".tar.gz"):
                    entry.unlink()
                    removed.append(entry)
            except OSError as e:
                self.logger.warning(f"Could not remove old backup {entry}: {e}")

        self.logger.info(f"Removed {len(removed)} old backup(s)")
        console.print("[green]✓ 정리 완료[/green]")
        return removed

    def show_summary(self, result: Path):
        console.print("\n[bold green]=== 백업 요약 ===[/bold green]")
        if result.is_file():
            console.print(f"[yellow]백업 파일: {result}[/yellow]")
            console.print(f"[yellow]크기: {format_size(result.stat().st_size)}[/yellow]")
        elif result.is_dir():
            size, count = directory_stats(result)
            console.print(f"[yellow]백업 디렉토리: {result}[/yellow]")
            console.print(f"[yellow]크기: {format_size(size)}[/yellow]")
            console.print(f"[yellow]파일 수: {count}[/yellow]")
        console.print("[bold green]백업이 완료되었습니다![/bold green]")

    def run(self) -> Tuple[bool, Optional[Path]]:
        """백업 실행. (성공 여부, 결과 경로)"""
        console.print("[bold green]=== OpenVPN Access Server 백업 ===[/bold green]")
        self.logger.info("=== Backup started ===")

        ok, _ = self.check_container()
        if not ok:
            self.logger.error(f"Container {self.container.name} is not running")
            return False, None

        backup_path = self.create_backup_dir()
        console.print(f"[blue]백업 위치: {backup_path}[/blue]")
        self.logger.info(f"Backup directory: {backup_path}")

        self.backup_configuration(backup_path)
        self.backup_data(backup_path)
        self.create_metadata(backup_path)

        result = backup_path
        if self.options.compress:
            try:
                result = self.compress_backup(backup_path)
            except (OSError, tarfile.TarError) as e:
                console.print(f"[red]압축 실패: {e}[/red]")
                self.logger.error(f"Compression failed: {e}")
                return False, backup_path

        self.cleanup_old_backups()
        self.show_summary(result)
        self.logger.info(f"=== Backup completed: {result} ===")
        return True, result
