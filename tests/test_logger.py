"""
로깅 시스템 테스트
"""

from pathlib import Path

from rich.logging import RichHandler

from openvpn_as_docker.logger import ToolLogger, get_logger, init_logger, prune_sessions


def test_session_log_written(tmp_path):
    logger = ToolLogger(str(tmp_path), "INFO", False)
    logger.info("backup started")
    logger.debug("hidden")

    main_log = Path(logger.get_log_files()["main_log"])
    text = main_log.read_text(encoding="utf-8")
    assert "[INFO] backup started" in text
    assert "hidden" not in text


def test_error_log_created_on_first_error(tmp_path):
    logger = ToolLogger(str(tmp_path), "INFO", False)
    error_log = Path(logger.get_log_files()["error_log"])
    assert not error_log.exists()

    logger.error("restore failed")

    assert "restore failed" in error_log.read_text(encoding="utf-8")


def test_reinit_replaces_handlers(tmp_path):
    first = init_logger(str(tmp_path / "a"))
    second = init_logger(str(tmp_path / "b"), debug=True)

    assert get_logger() is second
    assert len(second.logger.handlers) == 3
    assert first.log_file.parent != second.log_file.parent


def test_prune_sessions_keeps_newest(tmp_path):
    for stamp in ("20240101_000000_000000", "20240102_000000_000000", "20240103_000000_000000"):
        (tmp_path / f"ovpn-as_{stamp}.log").write_text("", encoding="utf-8")
        (tmp_path / f"error_{stamp}.log").write_text("", encoding="utf-8")
    (tmp_path / "notes.txt").write_text("", encoding="utf-8")

    removed = prune_sessions(tmp_path, keep=2)

    assert sorted(p.name for p in removed) == [
        "error_20240101_000000_000000.log",
        "ovpn-as_20240101_000000_000000.log",
    ]
    assert (tmp_path / "notes.txt").exists()


def test_warnings_stay_off_console_without_debug(tmp_path, capsys):
    """경고는 파일에만 기록되고 콘솔에 중복 출력되지 않는다"""
    logger = ToolLogger(str(tmp_path), "INFO", False)

    logger.warning("Default admin password in use")

    assert not any(isinstance(h, RichHandler) for h in logger.logger.handlers)
    assert "Default admin password in use" not in capsys.readouterr().out
    assert "[WARNING] Default admin password in use" in logger.log_file.read_text(encoding="utf-8")


def test_debug_mode_adds_console_handler(tmp_path):
    logger = ToolLogger(str(tmp_path), "INFO", True)
    assert any(isinstance(h, RichHandler) for h in logger.logger.handlers)
