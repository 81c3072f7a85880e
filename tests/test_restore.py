"""
복원 모듈 테스트
"""

import os
import shutil
import subprocess
import tarfile
from pathlib import Path

from openvpn_as_docker.restore import RestoreManager, RestoreOptions


def make_backup(root: Path, name: str = "20241129_143022", with_config: bool = True) -> Path:
    path = root / name
    path.mkdir(parents=True)
    if with_config:
        (path / "etc").mkdir()
        (path / "etc" / "as.conf").write_text("boot_pam_service=openvpnas\n", encoding="utf-8")
        (path / "config_database.txt").write_text("{}\n", encoding="utf-8")
    (path / "tmp").mkdir()
    (path / "logs").mkdir()
    (path / "backup_metadata.txt").write_text(
        "\n".join(f"line {i}" for i in range(20)) + "\n", encoding="utf-8"
    )
    return path


def copied(docker):
    return [(str(c.args[0]), c.args[1]) for c in docker.copy_to.call_args_list]


def test_requires_existing_container(config, docker, tmp_path):
    docker.exists.return_value = False
    backup = make_backup(tmp_path)

    ok, _ = RestoreManager(config, docker, RestoreOptions(backup, force=True)).run()

    assert ok is False
    docker.stop.assert_not_called()


def test_restore_from_directory(config, docker, tmp_path):
    backup = make_backup(tmp_path)

    ok, _ = RestoreManager(config, docker, RestoreOptions(backup, force=True)).run()

    assert ok is True
    docker.stop.assert_called_once()
    docker.compose_up.assert_called_once()
    assert docker.wait_until_ready.call_args.args == ("/opt/openvpn-as/init/as-init",)
    assert docker.wait_until_ready.call_args.kwargs["max_attempts"] == 3
    assert copied(docker) == [
        (f"{backup / 'etc'}/.", "/opt/openvpn-as/etc/"),
        (f"{backup / 'tmp'}/.", "/opt/openvpn-as/tmp/"),
    ]
    # 디렉토리 복원은 원본을 지우지 않는다
    assert backup.exists()


def test_stopped_container_is_not_stopped_again(config, docker, tmp_path):
    docker.is_running.return_value = False
    backup = make_backup(tmp_path)

    ok, _ = RestoreManager(config, docker, RestoreOptions(backup, force=True)).run()

    assert ok is True
    docker.stop.assert_not_called()
    docker.compose_up.assert_called_once()


def test_config_only(config, docker, tmp_path):
    backup = make_backup(tmp_path)

    ok, _ = RestoreManager(config, docker, RestoreOptions(backup, force=True, config_only=True)).run()

    assert ok is True
    assert copied(docker) == [(f"{backup / 'etc'}/.", "/opt/openvpn-as/etc/")]


def test_backup_without_config_is_rejected(config, docker, tmp_path):
    backup = make_backup(tmp_path, with_config=False)

    ok, _ = RestoreManager(config, docker, RestoreOptions(backup, force=True)).run()

    assert ok is False
    docker.stop.assert_not_called()
    docker.copy_to.assert_not_called()


def test_missing_backup_path(config, docker, tmp_path):
    ok, _ = RestoreManager(config, docker, RestoreOptions(tmp_path / "nope", force=True)).run()
    assert ok is False


def test_cancelled_restore(config, docker, tmp_path):
    backup = make_backup(tmp_path)
    manager = RestoreManager(config, docker, RestoreOptions(backup), confirm=lambda question: False)

    ok, msg = manager.run()

    assert ok is True
    assert msg == "취소됨"
    docker.stop.assert_not_called()
    docker.copy_to.assert_not_called()


def test_readiness_timeout_is_not_fatal(config, docker, tmp_path):
    docker.wait_until_ready.return_value = False
    backup = make_backup(tmp_path)

    ok, _ = RestoreManager(config, docker, RestoreOptions(backup, force=True)).run()

    assert ok is True


def test_copy_failure_aborts(config, docker, tmp_path):
    docker.copy_to.side_effect = subprocess.CalledProcessError(1, ["docker", "cp"])
    backup = make_backup(tmp_path)

    ok, _ = RestoreManager(config, docker, RestoreOptions(backup, force=True)).run()

    assert ok is False
    docker.compose_up.assert_not_called()


def make_archive(backup: Path, archive_name: str = None) -> Path:
    archive = backup.parent / (archive_name or f"{backup.name}.tar.gz")
    with tarfile.open(archive, "w:gz") as tar:
        tar.add(backup, arcname=backup.name)
    return archive


def leftover_temp_dirs(root: Path):
    return list(root.glob(".restore-*"))


class TestArchiveRestore:
    """아카이브 복원 테스트"""

    def test_restore_from_archive(self, config, docker, tmp_path):
        root = tmp_path / "backups"
        backup = make_backup(root)
        archive = make_archive(backup)
        shutil.rmtree(backup)

        ok, _ = RestoreManager(config, docker, RestoreOptions(archive, force=True)).run()

        assert ok is True
        etc_src, etc_dest = copied(docker)[0]
        assert etc_src.endswith("/20241129_143022/etc/.")
        assert etc_dest == "/opt/openvpn-as/etc/"
        assert archive.exists()
        assert leftover_temp_dirs(root) == []

    def test_directory_next_to_archive_is_kept(self, config, docker, tmp_path):
        """같은 이름의 백업 디렉토리가 있어도 건드리지 않는다"""
        root = tmp_path / "backups"
        backup = make_backup(root)
        archive = make_archive(backup)
        (backup / "only-in-directory.txt").write_text("keep me\n", encoding="utf-8")

        ok, _ = RestoreManager(config, docker, RestoreOptions(archive, force=True)).run()

        assert ok is True
        assert (backup / "only-in-directory.txt").read_text(encoding="utf-8") == "keep me\n"
        assert (backup / "etc" / "as.conf").is_file()
        assert not copied(docker)[0][0].startswith(f"{backup}/")
        assert leftover_temp_dirs(root) == []

    def test_renamed_archive(self, config, docker, tmp_path):
        root = tmp_path / "backups"
        backup = make_backup(root)
        archive = make_archive(backup, "nightly.tar.gz")
        shutil.rmtree(backup)

        ok, _ = RestoreManager(config, docker, RestoreOptions(archive, force=True)).run()

        assert ok is True
        assert copied(docker)[0][0].endswith("/20241129_143022/etc/.")
        assert leftover_temp_dirs(root) == []

    def test_invalid_archive_leaves_nothing_behind(self, config, docker, tmp_path):
        root = tmp_path / "backups"
        backup = make_backup(root, with_config=False)
        archive = make_archive(backup)
        shutil.rmtree(backup)

        ok, _ = RestoreManager(config, docker, RestoreOptions(archive, force=True)).run()

        assert ok is False
        docker.stop.assert_not_called()
        assert leftover_temp_dirs(root) == []

    def test_absolute_symlink_in_logs(self, config, docker, tmp_path):
        """docker cp 로 복사된 절대 경로 링크가 있어도 복원된다"""
        root = tmp_path / "backups"
        backup = make_backup(root)
        os.symlink("/var/log/syslog", backup / "logs" / "README")
        archive = make_archive(backup)
        shutil.rmtree(backup)

        ok, _ = RestoreManager(config, docker, RestoreOptions(archive, force=True)).run()

        assert ok is True
        assert len(copied(docker)) == 2

    def test_member_outside_destination_is_rejected(self, config, docker, tmp_path):
        root = tmp_path / "backups"
        root.mkdir()
        payload = tmp_path / "payload.txt"
        payload.write_text("x\n", encoding="utf-8")
        archive = root / "evil.tar.gz"
        with tarfile.open(archive, "w:gz") as tar:
            tar.add(payload, arcname="../evil.txt")

        ok, _ = RestoreManager(config, docker, RestoreOptions(archive, force=True)).run()

        assert ok is False
        assert not (root / "evil.txt").exists()
        docker.copy_to.assert_not_called()
        assert leftover_temp_dirs(root) == []
