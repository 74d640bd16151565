from typing import Optional

from PySide6.QtCore import QMutex

from picorepl.core.serial_transport import SerialTransport
from picorepl.core.session_errors import WriterUnavailableError
from picorepl.utils.logger import ErrorLogger


class WriterGate:
    """
    串口写入闸门。

    每次 send 获取写租约、写入完整字节序列、无条件释放租约。
    并发调用者在 _send_mutex 上排队，按到达顺序逐个写入，
    因此透传按键和事务控制序列不会交错。
    """

    def __init__(self, transport: SerialTransport, error_logger: Optional[ErrorLogger] = None):
        self.transport = transport
        self.error_logger = error_logger
        self._send_mutex = QMutex()

    def send(self, data: bytes) -> None:
        if not data:
            return
        self._send_mutex.lock()
        try:
            if not self.transport.is_open:
                if self.error_logger:
                    self.error_logger.log_warning("尝试在未连接的串口上写入数据。")
                raise WriterUnavailableError()
            lease = self.transport.acquire_writer()
            try:
                if self.error_logger:
                    self.error_logger.log_debug(f"发送数据 (pyserial): {data.hex(' ').upper()}", "SEND")
                lease.write(data)
            finally:
                lease.release()
        finally:
            self._send_mutex.unlock()
