import codecs
import threading
import time
from typing import Optional, Callable, Generator

from PySide6.QtCore import QMutex

from picorepl.core.serial_transport import SerialTransport
from picorepl.core.session_errors import ScanTimeoutError, TransportError
from picorepl.utils.constants import Constants
from picorepl.utils.logger import ErrorLogger

NO_MARKER: Optional[str] = None


class ScanningReader:
    """
    可重启、可取消的拉取式读取器。

    每次扫描持有一个读租约，逐块读取字节并增量解码为文本。
    解码器状态跨块、跨扫描保留，被拆开的多字节字符不会损坏；
    标记之后已解码的文本放入回推缓冲，由下一次扫描首先取走。
    """

    def __init__(self, transport: SerialTransport, encoding: str = Constants.DEFAULT_ENCODING,
                 error_logger: Optional[ErrorLogger] = None):
        self.transport = transport
        self.encoding = encoding
        self.error_logger = error_logger
        self.last_scan_cancelled = False
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._pushback = ""
        self._active_cancel: Optional[threading.Event] = None
        self._state_mutex = QMutex()

    @property
    def scan_active(self) -> bool:
        return self._active_cancel is not None

    @property
    def pending_text(self) -> str:
        return self._pushback

    def reset(self) -> None:
        """新连接开始前调用：丢弃解码器状态和回推文本"""
        self._decoder = codecs.getincrementaldecoder(self.encoding)(errors="replace")
        self._pushback = ""
        self.last_scan_cancelled = False

    def cancel(self) -> None:
        """请求取消当前扫描，在下一个数据块边界生效；没有扫描时为空操作"""
        self._state_mutex.lock()
        try:
            if self._active_cancel is not None:
                self._active_cancel.set()
        finally:
            self._state_mutex.unlock()

    def scan(self, marker: Optional[str] = NO_MARKER, observer: Optional[Callable[[str], None]] = None,
             timeout: Optional[float] = None, cancel_event: Optional[threading.Event] = None,
             accumulate: bool = True) -> str:
        """扫描直到标记、流结束或取消，返回不含标记的累积文本"""
        chunks = self.iter_chunks(marker, timeout=timeout, cancel_event=cancel_event, accumulate=accumulate)
        while True:
            try:
                chunk = next(chunks)
            except StopIteration as stop:
                return stop.value
            if observer:
                observer(chunk)

    def iter_chunks(self, marker: Optional[str] = NO_MARKER, timeout: Optional[float] = None,
                    cancel_event: Optional[threading.Event] = None,
                    accumulate: bool = True) -> Generator[str, None, str]:
        """逐块产出解码文本；生成器的返回值是累积文本"""
        lease = self.transport.acquire_reader()
        event = cancel_event if cancel_event is not None else threading.Event()
        self._state_mutex.lock()
        try:
            self._active_cancel = event
        finally:
            self._state_mutex.unlock()
        self.last_scan_cancelled = False
        deadline = time.monotonic() + timeout if timeout is not None else None
        # accumulate=False 时 text 只保留匹配跨块标记所需的尾部
        text = ""

        try:
            while True:
                if event.is_set():
                    self.last_scan_cancelled = True
                    return text if accumulate else ""

                eof = False
                if self._pushback:
                    decoded, self._pushback = self._pushback, ""
                else:
                    if deadline is not None and time.monotonic() >= deadline:
                        raise ScanTimeoutError(f"等待标记 {marker!r} 超时 ({timeout}s)", marker,
                                               text if accumulate else "")
                    data = lease.read()
                    if data is None:
                        eof = True
                        decoded = self._decoder.decode(b"", final=True)
                    elif not data:
                        continue
                    else:
                        if self.error_logger:
                            self.error_logger.log_debug(f"接收到 {len(data)} 字节数据: {data.hex(' ').upper()}", "READ")
                        decoded = self._decoder.decode(data)

                if decoded:
                    combined = text + decoded
                    idx = combined.find(marker, max(0, len(text) - len(marker) + 1)) if marker else -1
                    if idx >= 0:
                        self._pushback = combined[idx + len(marker):] + self._pushback
                        emit = combined[len(text):idx]
                        if emit:
                            yield emit
                        return combined[:idx] if accumulate else ""
                    if accumulate:
                        text = combined
                    elif marker and len(marker) > 1:
                        text = combined[-(len(marker) - 1):]
                    yield decoded

                if eof:
                    if self.error_logger:
                        self.error_logger.log_info("串口流已结束", "READ")
                    return text if accumulate else ""
        except TransportError as e:
            if self.error_logger:
                self.error_logger.log_error(str(e), "READ")
            raise
        finally:
            self._state_mutex.lock()
            try:
                self._active_cancel = None
            finally:
                self._state_mutex.unlock()
            lease.release()
