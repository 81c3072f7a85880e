#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
OpenVPN Access Server - 유지보수 모듈

이 모듈은 다음 기능을 제공합니다:
- 컨테이너/서비스 상태 및 리소스 사용량 조회
- 로그 조회, 재시작, 이미지 업데이트, 정리
- 관리자 비밀번호 재설정 및 사용자 관리 (sacli)
- 인증서 정보, 네트워크 테스트
- 헬스체크 및 리포트 저장
"""

import json
import os
import re
import subprocess
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import requests
from rich.console import Console

from .config import Config
from .docker import DockerClient
from .envfile import EnvSettings
from .logger import get_logger
from .sacli import SacliClient

console = Console()

CERT_FIELDS = re.compile(r"(Subject:|Issuer:|Not Before\s*:|Not After\s*:)")


def parse_percent(text: str) -> Optional[float]:
    """'42.5%' 같은 문자열에서 숫자 추출"""
    match = re.search(r"(\d+(?:\.\d+)?)\s*%?", text or "")
    return float(match.group(1)) if match else None


def parse_df_usage(output: str) -> Optional[float]:
    """df 출력의 마지막 줄에서 Use% 값 추출"""
    lines = [line for line in (output or "").splitlines() if line.strip()]
    if len(lines) < 2:
        return None
    fields = lines[-1].split()
    if len(fields) < 5:
        return None
    return parse_percent(fields[4])


class MaintenanceManager:
    """유지보수 작업 클래스"""

    def __init__(self, config: Config, docker: DockerClient, sacli: SacliClient):
        self.config = config
        self.docker = docker
        self.sacli = sacli
        self.container = config.container
        self.logger = get_logger()

    def check_container(self) -> Tuple[bool, str]:
        if not self.docker.is_running():
            console.print(f"[red]컨테이너 {self.container.name} 가 실행 중이 아닙니다![/red]")
            console.print("[yellow]시작하려면: ovpn-as start[/yellow]")
            self.logger.error(f"Container {self.container.name} is not running")
            return False, "컨테이너 미실행"
        return True, "실행 중"

    def _print_output(self, result: subprocess.CompletedProcess, failure: str) -> bool:
        if result.returncode == 0:
            console.print(result.stdout.rstrip("\n"), markup=False, highlight=False)
            return True
        console.print(f"[yellow]{failure}[/yellow]")
        self.logger.warning(failure)
        return False

    def status(self) -> Tuple[bool, str]:
        console.print("[bold green]=== OpenVPN Access Server 상태 ===[/bold green]")

        console.print("[blue]컨테이너 정보:[/blue]")
        self._print_output(
            self.docker.ps_table("table {{.Names}}\t{{.Status}}\t{{.Ports}}"),
            "컨테이너 정보를 가져올 수 없습니다"
        )
        console.print()

        console.print("[blue]리소스 사용량:[/blue]")
        self._print_output(
            self.docker.stats("table {{.Name}}\t{{.CPUPerc}}\t{{.MemUsage}}\t{{.NetIO}}\t{{.BlockIO}}"),
            "리소스 사용량을 가져올 수 없습니다"
        )
        console.print()

        console.print("[blue]활성 VPN 연결:[/blue]")
        self._print_output(self.sacli.vpn_status(), "VPN 상태를 가져올 수 없습니다")

        console.print("[blue]서비스 상태:[/blue]")
        self._print_output(
            self.docker.exec(["systemctl", "is-active", self.container.service]),
            "서비스 상태를 확인할 수 없습니다"
        )
        return True, "완료"

    def logs(self, follow: bool = False, lines: Optional[int] = None) -> Tuple[bool, str]:
        console.print("[blue]OpenVPN Access Server 로그:[/blue]")
        code = self.docker.logs(follow=follow, tail=lines)
        return code == 0, f"exit {code}"

    def restart(self) -> Tuple[bool, str]:
        console.print("[blue]OpenVPN Access Server 재시작 중...[/blue]")
        self.docker.compose_restart()
        console.print("[green]✓ 서버 재시작 완료[/green]")
        self.logger.info("Server restarted")
        return True, "재시작"

    def update(self) -> Tuple[bool, str]:
        console.print("[blue]OpenVPN Access Server 업데이트 중...[/blue]")
        console.print("[blue]최신 이미지 받는 중...[/blue]")
        self.docker.compose_pull()
        console.print("[blue]컨테이너 재생성 중...[/blue]")
        self.docker.compose_up()
        console.print("[green]✓ 서버 업데이트 완료[/green]")
        self.logger.info("Server updated")
        return True, "업데이트"

    def cleanup(self) -> Tuple[bool, str]:
        console.print("[blue]OpenVPN Access Server 정리 중...[/blue]")

        console.print("[blue]오래된 로그 정리 중...[/blue]")
        result = self.docker.exec(["find", self.container.log_path, "-name", "*.log.*", "-mtime", "+7", "-delete"])
        if result.returncode != 0:
            console.print("[yellow]오래된 로그를 정리할 수 없습니다[/yellow]")

        console.print("[blue]임시 파일 정리 중...[/blue]")
        result = self.docker.exec(["find", "/tmp", "-type", "f", "-mtime", "+1", "-delete"])
        if result.returncode != 0:
            console.print("[yellow]임시 파일을 정리할 수 없습니다[/yellow]")

        console.print("[blue]Docker 시스템 정리 중...[/blue]")
        self.docker.system_prune()

        console.print("[green]✓ 정리 완료[/green]")
        self.logger.info("Cleanup completed")
        return True, "정리"

    def admin_username(self) -> str:
        """.env 의 ADMIN_USERNAME (없으면 openvpn)"""
        return EnvSettings.from_file(self.config.env_path).admin_username

    def reset_admin(self, password: str) -> Tuple[bool, str]:
        if not password:
            return False, "비밀번호는 비어 있을 수 없습니다!"

        console.print("[blue]관리자 비밀번호 재설정 중...[/blue]")
        admin_user = self.admin_username()
        result = self.sacli.set_local_password(admin_user, password)
        if result.returncode != 0:
            self.logger.error(f"Failed to reset password for {admin_user}: {result.stderr}")
            return False, "관리자 비밀번호 재설정 실패!"

        console.print("[green]✓ 관리자 비밀번호 재설정 완료[/green]")
        self.logger.info(f"Password reset for admin user {admin_user}")
        return True, admin_user

    def list_users(self) -> Tuple[bool, List[str]]:
        console.print("[blue]VPN 사용자:[/blue]")
        try:
            users = self.sacli.list_users()
        except subprocess.CalledProcessError:
            console.print("[yellow]사용자 목록을 가져올 수 없습니다[/yellow]")
            self.logger.warning("Could not retrieve user list")
            return False, []

        for user in users:
            console.print(user, markup=False, highlight=False)
        return True, users

    def add_user(self, username: str, password: Optional[str] = None) -> Tuple[bool, str]:
        if not username:
            return False, "사용자 이름은 비어 있을 수 없습니다!"

        console.print(f"[blue]사용자 추가: {username}[/blue]")
        result = self.sacli.user_prop_put(username, "type", "user_connect")
        if result.returncode != 0:
            self.logger.error(f"Failed to add user {username}: {result.stderr}")
            return False, "사용자 추가 실패!"

        result = self.sacli.user_prop_put(username, "prop_autologin", "true")
        if result.returncode != 0:
            self.logger.warning(f"Could not enable autologin for {username}")

        if password:
            result = self.sacli.set_local_password(username, password)
            if result.returncode != 0:
                self.logger.error(f"Failed to set password for {username}: {result.stderr}")
                return False, "비밀번호 설정 실패!"

        console.print(f"[green]✓ 사용자 {username} 추가 완료[/green]")
        self.logger.info(f"User {username} added")
        return True, username

    def remove_user(self, username: str) -> Tuple[bool, str]:
        if not username:
            return False, "사용자 이름은 비어 있을 수 없습니다!"

        console.print(f"[blue]사용자 삭제: {username}[/blue]")
        result = self.sacli.user_prop_del(username)
        if result.returncode != 0:
            self.logger.error(f"Failed to remove user {username}: {result.stderr}")
            return False, "사용자 삭제 실패!"

        console.print(f"[green]✓ 사용자 {username} 삭제 완료[/green]")
        self.logger.info(f"User {username} removed")
        return True, username

    def cert_info(self) -> Dict[str, List[str]]:
        """서버/CA 인증서의 주체, 발급자, 유효기간"""
        certs = {
            "server": f"{self.container.config_path}/certs/server.crt",
            "ca": f"{self.container.config_path}/certs/ca.crt",
        }
        info = {}
        for label, path in certs.items():
            console.print(f"[blue]{'인증서 정보' if label == 'server' else 'CA 인증서'}:[/blue]")
            result = self.docker.exec(["openssl", "x509", "-in", path, "-text", "-noout"])
            lines = [line.strip() for line in result.stdout.splitlines() if CERT_FIELDS.search(line)] \
                if result.returncode == 0 else []
            if not lines:
                console.print(f"[yellow]{label} 인증서 정보를 가져올 수 없습니다[/yellow]")
            for line in lines:
                console.print(f"  {line}", markup=False, highlight=False)
            info[label] = lines
        return info

    def check_http(self, url: str, timeout: int = 5) -> Tuple[bool, str]:
        """호스트에서 HTTPS 연결 테스트"""
        try:
            self.logger.debug(f"Checking HTTP connection to {url}...")
            response = requests.get(url, timeout=timeout, verify=False)
            if response.status_code < 400:
                return True, f"✓ {url} 응답 ({response.status_code})"
            return False, f"✗ HTTP 오류: {response.status_code}"
        except requests.exceptions.SSLError:
            return False, f"✗ {url} SSL 인증서 오류"
        except requests.exceptions.ConnectionError:
            return False, f"✗ {url} 연결 실패"
        except requests.exceptions.Timeout:
            return False, f"✗ {url} 타임아웃"
        except requests.exceptions.RequestException as e:
            self.logger.debug(f"HTTP check error for {url}: {e}")
            return False, f"✗ HTTP 테스트 오류: {e}"

    def network_test(self) -> Dict[str, bool]:
        console.print("[blue]네트워크 연결 테스트:[/blue]")
        results = {}

        console.print("[blue]인터넷 연결 테스트 중...[/blue]")
        result = self.docker.exec(["ping", "-c", "3", "8.8.8.8"])
        results["internet"] = self._print_output(result, "인터넷 연결 테스트 실패!")

        console.print("[blue]DNS 조회 테스트 중...[/blue]")
        result = self.docker.exec(["nslookup", "google.com"])
        results["dns"] = self._print_output(result, "DNS 조회 테스트 실패!")

        console.print("[blue]네트워크 인터페이스:[/blue]")
        results["interfaces"] = self._print_output(
            self.docker.exec(["ip", "addr", "show"]), "인터페이스 정보를 가져올 수 없습니다")

        console.print("[blue]라우팅 테이블:[/blue]")
        results["routes"] = self._print_output(
            self.docker.exec(["ip", "route", "show"]), "라우팅 테이블을 가져올 수 없습니다")

        env = EnvSettings.from_file(self.config.env_path)
        console.print("[blue]Admin Web UI 접속 테스트 중...[/blue]")
        ok, msg = self.check_http(env.admin_url)
        console.print(f"  {msg}")
        results["admin_ui"] = ok

        return results

    def _check(self, healthy: bool, status: str, message: str) -> Dict:
        color = "green" if healthy else "red"
        console.print(f"[{color}]{'✓' if healthy else '✗'} {message}[/{color}]")
        return {"healthy": healthy, "status": status, "message": message}

    def health_check(self) -> Dict:
        """종합 헬스체크

        Returns:
            Dict: 항목별 결과, 문제 수, 전체 상태
        """
        console.print("[bold green]=== OpenVPN Access Server 헬스체크 ===[/bold green]")
        self.logger.info("Health check started")
        checks = {}

        console.print("[blue]컨테이너 상태 확인 중...[/blue]")
        running = self.docker.is_running()
        checks["container"] = self._check(
            running, "running" if running else "stopped",
            "컨테이너 실행 중" if running else "컨테이너가 실행 중이 아님")

        console.print("[blue]OpenVPN 서비스 확인 중...[/blue]")
        active = self.docker.exec(["systemctl", "is-active", self.container.service]).returncode == 0
        checks["service"] = self._check(
            active, "active" if active else "inactive",
            "OpenVPN 서비스 활성" if active else "OpenVPN 서비스 비활성")

        console.print("[blue]웹 인터페이스 확인 중...[/blue]")
        web = self.docker.exec(["curl", "-k", "-s", "-f", "https://localhost:943/"]).returncode == 0
        checks["web"] = self._check(
            web, "accessible" if web else "not_accessible",
            "웹 인터페이스 접근 가능" if web else "웹 인터페이스 접근 불가")

        console.print("[blue]디스크 공간 확인 중...[/blue]")
        result = self.docker.exec(["df", "/"])
        disk = parse_df_usage(result.stdout) if result.returncode == 0 else None
        if disk is None:
            checks["disk"] = self._check(False, "unknown", "디스크 사용량을 확인할 수 없음")
        else:
            ok = disk < self.config.health.disk_threshold
            checks["disk"] = self._check(
                ok, f"{disk:g}%",
                f"디스크 공간 충분 ({disk:g}% 사용)" if ok else f"디스크 공간 부족 ({disk:g}% 사용)")

        console.print("[blue]메모리 사용량 확인 중...[/blue]")
        result = self.docker.stats("{{.MemPerc}}")
        memory = parse_percent(result.stdout) if result.returncode == 0 else None
        if memory is None:
            checks["memory"] = self._check(False, "unknown", "메모리 사용량을 확인할 수 없음")
        else:
            ok = memory < self.config.health.memory_threshold
            checks["memory"] = self._check(
                ok, f"{memory:g}%",
                f"메모리 사용량 정상 ({memory:g}%)" if ok else f"메모리 사용량 높음 ({memory:g}%)")

        issues = [name for name, check in checks.items() if not check["healthy"]]
        results = {
            "timestamp": datetime.now().isoformat(),
            "container": self.container.name,
            "checks": checks,
            "issues": len(issues),
            "overall_status": "unhealthy" if issues else "healthy",
        }
        if issues:
            results["failed_checks"] = issues

        console.print()
        if issues:
            console.print(f"[red]{len(issues)}개 문제가 발견되었습니다. 위 결과를 확인하세요.[/red]")
            self.logger.warning(f"Health check found issues: {issues}")
        else:
            console.print("[green]모든 헬스체크 통과! ✓[/green]")
            self.logger.info("Health check passed")
        return results

    def save_health_report(self, results: Dict) -> Path:
        """헬스체크 결과를 JSON 파일로 저장"""
        report_dir = Path(os.path.expanduser(self.config.health.report_dir))
        report_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        report_file = report_dir / f"health_report_{timestamp}.json"

        with open(report_file, "w", encoding="utf-8") as f:
            json.dump(results, f, indent=2, ensure_ascii=False)

        self.logger.info(f"Health report saved: {report_file}")
        return report_file
