from dataclasses import dataclass
from typing import Optional
from picorepl.utils.constants import Constants


@dataclass
class SerialPortConfig:
    """串口配置数据类"""
    port_name: Optional[str] = None  # 设备路径或 pyserial URL (loop://, socket://...)
    baud_rate: int = Constants.DEFAULT_BAUD_RATE
    data_bits: int = 8
    parity: str = "None"
    stop_bits: float = 1
    read_timeout_s: float = Constants.DEFAULT_READ_TIMEOUT_S


@dataclass
class SessionConfig:
    """REPL 会话配置数据类"""
    encoding: str = Constants.DEFAULT_ENCODING
    read_chunk_size: int = Constants.DEFAULT_READ_CHUNK_SIZE
    scan_timeout_s: Optional[float] = None  # None: 等待标记不设上限
    default_file_name: str = Constants.DEFAULT_DEVICE_FILE
