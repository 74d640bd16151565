"""日志记录器测试"""
import logging
import os
import sys

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from picorepl.utils.logger import ErrorLogger


class TestErrorLogger:
    def test_creates_log_directory_and_dated_file_name(self, tmp_path):
        log_dir = tmp_path / "logs"
        logger = ErrorLogger("picorepl_test_", log_dir)
        assert log_dir.is_dir()
        assert logger.log_filename.parent == log_dir
        assert logger.log_filename.name.startswith("picorepl_test_")
        assert logger.log_filename.suffix == ".log"

    def test_messages_are_tagged_with_type(self, tmp_path, caplog):
        logger = ErrorLogger("picorepl_test_", tmp_path)
        with caplog.at_level(logging.DEBUG, logger="PicoReplSession"):
            logger.log_error("打开串口失败", "CONNECTION")
            logger.log_info("会话状态: Disconnected -> Connecting", "SESSION")
            logger.log_warning("没有可导出的终端内容。")
            logger.log_debug("读租约已获取", "LEASE")
        messages = [record.getMessage() for record in caplog.records]
        assert "[CONNECTION] 打开串口失败" in messages
        assert "[SESSION] 会话状态: Disconnected -> Connecting" in messages
        assert "[WARNING] 没有可导出的终端内容。" in messages
        assert "[LEASE] 读租约已获取" in messages
