import json
from datetime import datetime
from typing import Optional, Dict, List, Any
from picorepl.utils.constants import Constants
from picorepl.utils.logger import ErrorLogger


class TranscriptRecorder:
    def __init__(self, error_logger: Optional[ErrorLogger] = None):
        self.recording: bool = False
        self.entries: List[Dict[str, Any]] = []  # {'timestamp': dt, 'direction': 'RX'/'TX', 'text': str}
        self.error_logger = error_logger

    def start_recording(self) -> None:
        self.recording = True
        self.entries.clear()
        if self.error_logger:
            self.error_logger.log_info("开始终端记录。")

    def stop_recording(self) -> None:
        self.recording = False
        if self.error_logger:
            self.error_logger.log_info("停止终端记录。")

    def clear(self) -> None:
        self.entries.clear()

    def record(self, direction: str, text: str, timestamp: Optional[datetime] = None) -> None:
        if not self.recording or not text:
            return
        self.entries.append({
            'timestamp': timestamp or datetime.now(),
            'direction': direction,
            'text': text
        })
        if len(self.entries) > Constants.MAX_HISTORY_SIZE:
            self.entries.pop(0)

    def received_text(self) -> str:
        """终端上显示过的全部接收文本"""
        return "".join(entry['text'] for entry in self.entries if entry['direction'] == "RX")

    def export_transcript_text(self, filename: str) -> bool:
        if not self.entries:
            if self.error_logger:
                self.error_logger.log_warning("没有可导出的终端内容。")
            return False
        try:
            with open(filename, 'w', encoding='utf-8', newline='') as f:
                f.write(self.received_text())
            if self.error_logger:
                self.error_logger.log_info(f"终端内容已导出到: {filename}")
            return True
        except OSError as e:
            if self.error_logger:
                self.error_logger.log_error(f"导出终端内容失败: {e}", "RECORDER")
            return False

    def save_raw_to_file(self, filename: str) -> bool:
        try:
            with open(filename, 'w', encoding='utf-8') as f:
                for entry in self.entries:
                    entry_to_save = entry.copy()
                    entry_to_save['timestamp'] = entry['timestamp'].isoformat()
                    json.dump(entry_to_save, f, ensure_ascii=False)
                    f.write('\n')
            if self.error_logger:
                self.error_logger.log_info(f"终端记录已保存到: {filename}")
            return True
        except OSError as e:
            if self.error_logger:
                self.error_logger.log_error(f"保存终端记录失败: {e}", "RECORDER")
            return False
