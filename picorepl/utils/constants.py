from typing import List


class Constants:
    """应用常量定义"""
    MAX_HISTORY_SIZE: int = 10000
    DEFAULT_BAUD_RATE: int = 115200
    DEFAULT_READ_TIMEOUT_S: float = 0.1  # pyserial read 超时，即取消检查的最长间隔
    DEFAULT_READ_CHUNK_SIZE: int = 4096
    DEFAULT_ENCODING: str = "utf-8"
    DEFAULT_DEVICE_FILE: str = "temp.py"
    CONFIG_FILE_NAME: str = "picorepl_config.json"
    LOG_FILE_PREFIX: str = "picorepl_"

    VALID_DATA_BITS: List[int] = [5, 6, 7, 8]
    VALID_PARITY: List[str] = ["None", "Even", "Odd", "Mark", "Space"]
    VALID_STOP_BITS: List[float] = [1, 1.5, 2]

    # MicroPython REPL 控制字节
    CTRL_A: bytes = b"\x01"  # 进入 raw REPL
    CTRL_B: bytes = b"\x02"  # 返回普通 REPL
    CTRL_C: bytes = b"\x03"  # 中断当前执行
    CTRL_D: bytes = b"\x04"  # 执行 raw 缓冲 / 输出结束

    # 扫描标记
    RAW_REPL_ACK_MARKER: str = "OK"
    RAW_OUTPUT_END_MARKER: str = "\x04"
