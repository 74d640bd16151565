from typing import Optional, List, Dict, Callable, Any

import serial
import serial.tools.list_ports
from PySide6.QtCore import QMutex

from picorepl.core.session_errors import OpenFailure, TransportError, BusyError, WriterUnavailableError
from picorepl.utils.constants import Constants
from picorepl.utils.data_models import SerialPortConfig
from picorepl.utils.logger import ErrorLogger


def list_available_ports(error_logger: Optional[ErrorLogger] = None) -> List[Dict[str, str]]:
    ports_info = []
    ports = serial.tools.list_ports.comports()
    if error_logger:
        error_logger.log_info(f"pyserial找到的串口: {[port.device for port in ports]}")
    for port in ports:
        ports_info.append({"name": port.device, "description": port.description})
    return ports_info


def _open_pyserial_port(url: str, **kwargs) -> serial.Serial:
    # serial_for_url 同时支持设备路径和 loop:// socket:// 等 URL
    return serial.serial_for_url(url, do_not_open=True, **kwargs)


class ReadLease:
    """串口读端的独占租约"""

    def __init__(self, transport: "SerialTransport", port: Any, chunk_size: int):
        self._transport = transport
        self._port = port
        self._chunk_size = chunk_size
        self.released = False

    def read(self) -> Optional[bytes]:
        """读取一块数据；超时返回 b''，串口已关闭 (end-of-stream) 返回 None"""
        if self.released:
            raise TransportError("读租约已释放")
        if not self._port.is_open:
            return None
        try:
            waiting = self._port.in_waiting
            return self._port.read(min(waiting, self._chunk_size) if waiting else 1)
        except (serial.SerialException, OSError) as e:
            raise TransportError(f"串口读取错误: {e}", cause=e) from e

    def release(self) -> None:
        if not self.released:
            self.released = True
            self._transport._release_reader(self)


class WriteLease:
    """串口写端的独占租约，只在一次写入期间持有"""

    def __init__(self, transport: "SerialTransport", port: Any):
        self._transport = transport
        self._port = port
        self.released = False

    def write(self, data: bytes) -> int:
        if self.released:
            raise TransportError("写租约已释放")
        try:
            bytes_written = self._port.write(data)
            self._port.flush()
        except (serial.SerialException, OSError) as e:
            raise TransportError(f"串口写入错误: {e}", cause=e) from e
        if bytes_written is not None and bytes_written != len(data):
            raise TransportError(f"串口部分写入: {bytes_written}/{len(data)}字节。")
        return len(data)

    def release(self) -> None:
        if not self.released:
            self.released = True
            self._transport._release_writer(self)


class SerialTransport:
    """基于 pyserial 的全双工字节流，读端和写端各自最多只有一个租约"""

    def __init__(self, port_factory: Optional[Callable[..., Any]] = None,
                 error_logger: Optional[ErrorLogger] = None,
                 read_chunk_size: int = Constants.DEFAULT_READ_CHUNK_SIZE):
        self.port_factory = port_factory or _open_pyserial_port
        self.error_logger = error_logger
        self.read_chunk_size = read_chunk_size
        self.config: Optional[SerialPortConfig] = None
        self._port: Any = None
        self._read_lease: Optional[ReadLease] = None
        self._write_lease: Optional[WriteLease] = None
        self._lease_mutex = QMutex()

    @property
    def is_open(self) -> bool:
        return self._port is not None and bool(self._port.is_open)

    @property
    def active_read_lease(self) -> Optional[ReadLease]:
        return self._read_lease

    @property
    def active_write_lease(self) -> Optional[WriteLease]:
        return self._write_lease

    def open(self, config: SerialPortConfig) -> None:
        if self._port is not None:
            raise BusyError(f"串口 {self.config.port_name if self.config else ''} 已打开")

        self._validate_config(config)

        # pyserial 的 parity 参数是 'N', 'E', 'O', 'M', 'S'
        pyserial_parity = config.parity[0].upper() if config.parity != "None" else serial.PARITY_NONE
        pyserial_stopbits = serial.STOPBITS_ONE
        if config.stop_bits == 1.5:
            pyserial_stopbits = serial.STOPBITS_ONE_POINT_FIVE
        elif config.stop_bits == 2:
            pyserial_stopbits = serial.STOPBITS_TWO

        try:
            port = self.port_factory(
                config.port_name,
                baudrate=config.baud_rate,
                bytesize=config.data_bits,
                parity=pyserial_parity,
                stopbits=pyserial_stopbits,
                timeout=config.read_timeout_s,
                xonxoff=False,
                rtscts=False,
                dsrdtr=False,
            )
            port.open()
        except (serial.SerialException, OSError, ValueError) as e:
            msg = f"打开串口失败: {e}"
            if self.error_logger:
                self.error_logger.log_error(msg, "CONNECTION")
            raise OpenFailure(msg, config.port_name) from e

        self._port = port
        self.config = config
        if self.error_logger:
            self.error_logger.log_info(f"已连接 {config.port_name} @ {config.baud_rate} (pyserial)")

    def close(self) -> None:
        """关闭串口并强制收回所有租约；关闭失败抛出 TransportError，但状态总会被清空"""
        port = self._port
        self._lease_mutex.lock()
        try:
            for lease in (self._read_lease, self._write_lease):
                if lease is not None:
                    lease.released = True
            self._read_lease = None
            self._write_lease = None
        finally:
            self._lease_mutex.unlock()
        self._port = None
        if port is None:
            return
        try:
            if port.is_open:
                port.close()
        except (serial.SerialException, OSError) as e:
            raise TransportError(f"关闭串口失败: {e}", cause=e) from e
        finally:
            if self.error_logger:
                self.error_logger.log_info("串口已关闭 (pyserial)")

    def acquire_reader(self) -> ReadLease:
        self._lease_mutex.lock()
        try:
            if self._port is None:
                raise TransportError("串口未打开，无法获取读租约")
            if self._read_lease is not None:
                raise BusyError("读端已被占用")
            self._read_lease = ReadLease(self, self._port, self.read_chunk_size)
            if self.error_logger:
                self.error_logger.log_debug("读租约已获取", "LEASE")
            return self._read_lease
        finally:
            self._lease_mutex.unlock()

    def acquire_writer(self) -> WriteLease:
        self._lease_mutex.lock()
        try:
            if self._port is None:
                raise WriterUnavailableError()
            if self._write_lease is not None:
                raise BusyError("写端已被占用")
            self._write_lease = WriteLease(self, self._port)
            return self._write_lease
        finally:
            self._lease_mutex.unlock()

    def _release_reader(self, lease: ReadLease) -> None:
        self._lease_mutex.lock()
        try:
            if self._read_lease is lease:
                self._read_lease = None
                if self.error_logger:
                    self.error_logger.log_debug("读租约已释放", "LEASE")
        finally:
            self._lease_mutex.unlock()

    def _release_writer(self, lease: WriteLease) -> None:
        self._lease_mutex.lock()
        try:
            if self._write_lease is lease:
                self._write_lease = None
        finally:
            self._lease_mutex.unlock()

    def _validate_config(self, config: SerialPortConfig) -> None:
        # 参数验证
        if not config.port_name:
            self._raise_invalid("未选择串口", config)
        if not isinstance(config.baud_rate, int) or config.baud_rate <= 0:
            self._raise_invalid(f"无效的波特率: {config.baud_rate}", config)
        if config.data_bits not in Constants.VALID_DATA_BITS:
            self._raise_invalid(f"无效的数据位: {config.data_bits}", config)
        if config.parity not in Constants.VALID_PARITY:
            self._raise_invalid(f"无效的校验位: {config.parity}", config)
        if config.stop_bits not in Constants.VALID_STOP_BITS:
            self._raise_invalid(f"无效的停止位: {config.stop_bits}", config)

    def _raise_invalid(self, message: str, config: SerialPortConfig) -> None:
        if self.error_logger:
            self.error_logger.log_error(message, "CONNECTION")
        raise OpenFailure(f"错误: {message}", config.port_name)
