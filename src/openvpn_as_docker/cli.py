"""
CLI 메인 인터페이스
Click 및 Rich 기반 OpenVPN Access Server 배포/운영 CLI
"""

import shutil
import subprocess
import sys
from pathlib import Path
import click
from rich.console import Console
from rich.prompt import Confirm, Prompt
from rich.table import Table
from . import __version__
from .backup import BackupManager, BackupOptions
from .config import Config
from .docker import DockerClient
from .envfile import EnvSettings
from .installer import SetupManager, write_templates
from .logger import init_logger, get_logger
from .maintenance import MaintenanceManager
from .restore import RestoreManager, RestoreOptions
from .sacli import SacliClient

console = Console()


class Context:
    """명령 간에 공유되는 설정과 클라이언트"""

    def __init__(self, config_path=None, debug=False):
        self.config = Config(config_path)
        self.debug = debug
        init_logger(self.config.agent.log_dir, self.config.agent.log_level, debug)
        self.logger = get_logger()
        self.docker = DockerClient(
            self.config.container.name,
            self.config.project_path(),
            debug
        )
        self.sacli = SacliClient(self.docker, self.config.container.sacli_path)

    def maintenance(self) -> MaintenanceManager:
        return MaintenanceManager(self.config, self.docker, self.sacli)

    def running_maintenance(self) -> MaintenanceManager:
        """실행 중인 컨테이너가 필요한 명령용"""
        manager = self.maintenance()
        ok, _ = manager.check_container()
        if not ok:
            sys.exit(1)
        return manager


pass_context = click.make_pass_decorator(Context)


def fail(message: str):
    console.print(f"[red]✗ {message}[/red]")
    sys.exit(1)


def run_external(action, *args):
    """외부 명령 실패를 종료 코드 1로 변환"""
    try:
        return action(*args)
    except subprocess.CalledProcessError as e:
        get_logger().error(f"Command failed ({e.returncode}): {e.cmd}")
        fail(f"명령 실행 실패 (exit {e.returncode})")
    except FileNotFoundError as e:
        get_logger().error(str(e))
        fail(str(e))


@click.group()
@click.version_option(version=__version__)
@click.option('--config', '-c', 'config_path', type=click.Path(exists=True), help='도구 설정 파일 경로')
@click.option('--debug', is_flag=True, help='디버그 모드')
@click.pass_context
def cli(ctx, config_path, debug):
    """OpenVPN Access Server Docker 배포 도구

    컨테이너 설치, 백업/복원, 유지보수 작업을 수행합니다.
    """
    ctx.obj = Context(config_path, debug)


# 설정

@cli.command()
@click.option('--output', '-o', type=click.Path(), default=None, help='도구 설정 파일 생성 경로')
@click.option('--force', is_flag=True, help='기존 docker-compose.yml / .env.example 덮어쓰기')
@pass_context
def init(obj, output, force):
    """.env.example, docker-compose.yml (및 샘플 설정) 생성"""
    written = write_templates(obj.config, force=force)
    for key, label in (("env_example", ".env.example"), ("compose", "docker-compose.yml")):
        if written[key]:
            console.print(f"[green]✓ {label} 생성: {written[key]}[/green]")
        else:
            console.print(f"[yellow]{label} 이(가) 이미 있습니다 (--force 로 덮어쓰기)[/yellow]")

    if output:
        obj.config.create_sample(output)
        console.print(f"[green]✓ 샘플 설정 파일 생성: {output}[/green]")

    console.print("[cyan].env.example 을 .env 로 복사해 편집한 뒤 다음 명령어로 설치하세요:[/cyan]")
    console.print("[cyan]  ovpn-as setup[/cyan]")


@cli.command()
@pass_context
def validate(obj):
    """도구 설정과 환경 파일 내용 표시"""
    try:
        env = EnvSettings.from_file(obj.config.env_path)
    except ValueError as e:
        fail(f"환경 파일 오류: {e}")

    console.print("[green]✓ 설정이 유효합니다.[/green]")

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("항목", style="cyan")
    table.add_column("값")

    table.add_row("설정 파일", obj.config.config_path or "[yellow]기본값[/yellow]")
    table.add_row("프로젝트 디렉토리", str(obj.config.project_path()))
    table.add_row("컨테이너", obj.config.container.name)
    table.add_row("이미지", env.image_ref(obj.config.container.image))
    table.add_row("서버 호스트", env.server_hostname)
    table.add_row("Admin UI", env.admin_url)
    table.add_row("VPN 포트", f"{env.openvpn_port}/{env.vpn_protocol}")
    table.add_row("기본 비밀번호", "[red]예[/red]" if env.uses_default_password else "아니오")
    table.add_row("백업 디렉토리", str(obj.config.backup_dir))
    table.add_row("백업 보관 기간", f"{obj.config.backup.retention_days}일")

    console.print(table)


@cli.command('config-check')
@pass_context
def config_check(obj):
    """.env 존재 및 docker-compose.yml 유효성 검사"""
    console.print("[blue].env 파일 확인 중...[/blue]")
    if not obj.config.env_path.is_file():
        fail(".env 파일을 찾을 수 없습니다")
    console.print("[green]✓ .env 파일 존재[/green]")

    console.print("[blue]docker-compose.yml 확인 중...[/blue]")
    result = run_external(obj.docker.compose_config)
    if result.returncode != 0:
        console.print(result.stderr, markup=False)
        fail("docker-compose.yml 이 유효하지 않습니다")
    console.print("[green]✓ docker-compose.yml 유효[/green]")


# 설치 및 컨테이너 관리

@cli.command()
@click.option('--yes', '-y', is_flag=True, help='확인 질문 없이 진행')
@pass_context
def setup(obj, yes):
    """초기 설치 (디렉토리, .env, 이미지, 컨테이너 시작)"""
    manager = SetupManager(obj.config, obj.docker, obj.debug, assume_yes=yes)
    sys.exit(0 if manager.run() else 1)


@cli.command()
@pass_context
def start(obj):
    """컨테이너 시작 (compose up -d)"""
    run_external(obj.docker.compose_up)
    console.print("[green]✓ 컨테이너 시작[/green]")


@cli.command()
@pass_context
def stop(obj):
    """컨테이너 중지 (compose down)"""
    run_external(obj.docker.compose_down)
    console.print("[green]✓ 컨테이너 중지[/green]")


@cli.command()
@pass_context
def restart(obj):
    """서버 재시작"""
    run_external(obj.maintenance().restart)


@cli.command()
@pass_context
def update(obj):
    """최신 이미지로 업데이트"""
    run_external(obj.maintenance().update)


@cli.command()
@pass_context
def status(obj):
    """컨테이너 상태와 VPN 연결 표시"""
    obj.running_maintenance().status()


@cli.command()
@click.option('--follow', '-f', is_flag=True, help='로그 계속 보기')
@click.option('--lines', '-n', type=int, default=None, help='마지막 N줄만 표시')
@pass_context
def logs(obj, follow, lines):
    """서버 로그 표시"""
    manager = obj.running_maintenance()
    try:
        ok, _ = manager.logs(follow=follow, lines=lines)
    except KeyboardInterrupt:
        ok = True
    sys.exit(0 if ok else 1)


@cli.command()
@pass_context
def cleanup(obj):
    """오래된 로그 및 임시 파일 정리"""
    run_external(obj.running_maintenance().cleanup)


# 백업 / 복원

@cli.command()
@click.option('--backup-dir', '-d', type=click.Path(), default=None, help='백업 디렉토리 (기본값: ./backups)')
@click.option('--compress', '-c', is_flag=True, help='백업을 tar.gz 로 압축')
@click.option('--config-only', is_flag=True, help='설정 파일만 백업')
@click.option('--retention-days', type=int, default=None, help='N일 지난 백업 삭제 (기본값: 30)')
@pass_context
def backup(obj, backup_dir, compress, config_only, retention_days):
    """설정 및 데이터 백업"""
    options = BackupOptions(
        backup_dir=Path(backup_dir) if backup_dir else obj.config.backup_dir,
        compress=compress,
        config_only=config_only,
        retention_days=obj.config.backup.retention_days if retention_days is None else retention_days,
    )
    manager = BackupManager(obj.config, obj.docker, obj.sacli, options)
    ok, _ = manager.run()
    sys.exit(0 if ok else 1)


@cli.command()
@click.argument('backup_path', type=click.Path())
@click.option('--force', '-f', is_flag=True, help='확인 없이 복원')
@click.option('--config-only', is_flag=True, help='설정 파일만 복원')
@pass_context
def restore(obj, backup_path, force, config_only):
    """백업 디렉토리 또는 .tar.gz 아카이브에서 복원"""
    options = RestoreOptions(backup_path=Path(backup_path), force=force, config_only=config_only)
    manager = RestoreManager(obj.config, obj.docker, options)
    ok, _ = manager.run()
    sys.exit(0 if ok else 1)


# 사용자 관리

@cli.command('reset-admin')
@click.argument('password', required=False)
@pass_context
def reset_admin(obj, password):
    """관리자 비밀번호 재설정"""
    manager = obj.running_maintenance()
    if not password:
        password = Prompt.ask("새 관리자 비밀번호", password=True)
    ok, msg = manager.reset_admin(password)
    if not ok:
        fail(msg)


@cli.command('list-users')
@pass_context
def list_users(obj):
    """VPN 사용자 목록"""
    obj.running_maintenance().list_users()


@cli.command('add-user')
@click.argument('username', required=False)
@click.option('--password', '-p', default=None, help='사용자 비밀번호 (생략 시 입력)')
@pass_context
def add_user(obj, username, password):
    """VPN 사용자 추가"""
    manager = obj.running_maintenance()
    if not username:
        username = Prompt.ask("사용자 이름")
    if username and password is None:
        password = Prompt.ask(f"{username} 의 비밀번호 (비워두면 설정 안 함)", password=True, default="")
    ok, msg = manager.add_user(username, password)
    if not ok:
        fail(msg)


@cli.command('remove-user')
@click.argument('username', required=False)
@click.option('--yes', '-y', is_flag=True, help='확인 없이 삭제')
@pass_context
def remove_user(obj, username, yes):
    """VPN 사용자 삭제"""
    manager = obj.running_maintenance()
    if not username:
        username = Prompt.ask("삭제할 사용자 이름")
    if not username:
        fail("사용자 이름은 비어 있을 수 없습니다!")

    if not yes:
        console.print(f"[yellow]경고: 사용자 {username} 를 영구 삭제합니다[/yellow]")
        if not Confirm.ask("계속하시겠습니까?", default=False):
            console.print("[blue]취소되었습니다.[/blue]")
            return

    ok, msg = manager.remove_user(username)
    if not ok:
        fail(msg)


# 진단

@cli.command('cert-info')
@pass_context
def cert_info(obj):
    """인증서 정보 표시"""
    obj.running_maintenance().cert_info()


@cli.command('network-test')
@pass_context
def network_test(obj):
    """네트워크 연결 테스트"""
    obj.running_maintenance().network_test()


@cli.command('health-check')
@click.option('--save-report', is_flag=True, help='결과를 JSON 리포트로 저장')
@pass_context
def health_check(obj, save_report):
    """종합 헬스체크"""
    manager = obj.maintenance()
    results = manager.health_check()

    if save_report:
        report_file = manager.save_health_report(results)
        console.print(f"\n[green]✅ 리포트 저장: {report_file}[/green]")

    sys.exit(0 if results["overall_status"] == "healthy" else 1)


@cli.command()
@pass_context
def shell(obj):
    """컨테이너 셸 열기"""
    result = obj.docker.exec(["/bin/bash"], interactive=True, tty=True, capture=False)
    sys.exit(result.returncode)


def _open_ui(obj, admin: bool):
    env = EnvSettings.from_file(obj.config.env_path)
    env.server_hostname = "localhost"
    url = env.admin_url if admin else env.client_url
    console.print(f"[cyan]{'Admin' if admin else 'Client'} UI 열기: {url}[/cyan]")
    if click.launch(url) != 0:
        console.print(f"[yellow]브라우저에서 {url} 을(를) 여세요[/yellow]")


@cli.command('open-admin')
@pass_context
def open_admin(obj):
    """브라우저에서 Admin 웹 UI 열기"""
    _open_ui(obj, admin=True)


@cli.command('open-client')
@pass_context
def open_client(obj):
    """브라우저에서 Client 웹 UI 열기"""
    _open_ui(obj, admin=False)


@cli.command()
@pass_context
def clean(obj):
    """컨테이너, 볼륨, 데이터 전부 삭제 (위험!)"""
    console.print("[bold red]경고: 모든 OpenVPN 데이터가 삭제됩니다![/bold red]")
    answer = Prompt.ask("정말 삭제하려면 'yes' 를 입력하세요")
    if answer != "yes":
        console.print("[blue]취소되었습니다.[/blue]")
        return

    run_external(obj.docker.compose_down, True)
    obj.docker.volume_prune()
    for directory in ("data", "logs", "config"):
        shutil.rmtree(obj.config.project_path(directory), ignore_errors=True)
    obj.logger.warning("All deployment data removed")
    console.print("[green]모든 데이터가 삭제되었습니다[/green]")


def main():
    """메인 엔트리 포인트"""
    cli()


if __name__ == '__main__':
    main()
