"""测试公共夹具：脚本化的假串口和 Qt 核心应用"""
import os
import sys
import threading
import time
from collections import deque
from typing import Callable, Iterable, List, Optional

import pytest
import serial

# 添加项目根目录到Python路径
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from PySide6.QtCore import QCoreApplication


class FakeSerialPort:
    """
    模拟 pyserial 串口。

    chunks 按原样逐块返回（in_waiting 总是等于队首块长度），
    responder(data) 在每次写入后返回需要追加到接收队列的数据块，用来模拟设备应答。
    """

    def __init__(self, chunks: Iterable[bytes] = (), close_when_drained: bool = False,
                 responder: Optional[Callable[[bytes], List[bytes]]] = None, read_delay: float = 0.005):
        self.open_kwargs = {}
        self.url = None
        self.is_open = False
        self.close_when_drained = close_when_drained
        self.responder = responder
        self.read_delay = read_delay
        self.writes: List[bytes] = []
        self.read_error: Optional[str] = None
        self.write_error: Optional[str] = None
        self.on_write: Optional[Callable[[bytes], None]] = None
        self._chunks = deque(chunks)
        self._lock = threading.Lock()

    def open(self):
        self.is_open = True

    def close(self):
        self.is_open = False

    def feed(self, *chunks: bytes) -> None:
        with self._lock:
            self._chunks.extend(chunks)

    @property
    def in_waiting(self) -> int:
        with self._lock:
            return len(self._chunks[0]) if self._chunks else 0

    def read(self, size: int = 1) -> bytes:
        with self._lock:
            if self.read_error:
                raise serial.SerialException(self.read_error)
            if self._chunks:
                chunk = self._chunks.popleft()
                if len(chunk) > size:
                    self._chunks.appendleft(chunk[size:])
                    chunk = chunk[:size]
                return chunk
        if self.close_when_drained:
            self.is_open = False
            return b""
        time.sleep(self.read_delay)
        return b""

    def write(self, data: bytes) -> int:
        if self.write_error:
            raise serial.SerialException(self.write_error)
        if self.on_write:
            self.on_write(data)
        self.writes.append(bytes(data))
        if self.responder:
            self.feed(*self.responder(bytes(data)))
        return len(data)

    def flush(self):
        pass

    @property
    def written(self) -> bytes:
        return b"".join(self.writes)


def make_port_factory(port: FakeSerialPort):
    def factory(url, **kwargs):
        kwargs.pop("do_not_open", None)
        port.url = url
        port.open_kwargs = kwargs
        return port
    return factory


def micropython_responder(stdout: bytes = b"", stderr: bytes = b"") -> Callable[[bytes], List[bytes]]:
    """模拟设备 raw REPL：收到 CTRL-D 回复 OK+输出，收到 CTRL-B 回到普通提示符"""
    def respond(data: bytes) -> List[bytes]:
        replies = []
        if b"\x01" in data:
            replies.append(b"raw REPL; CTRL-B to exit\r\n>")
        if b"\x04" in data:
            replies.append(b"OK" + stdout + b"\x04" + stderr + b"\x04>")
        if b"\x02" in data:
            replies.append(b"\r\nMicroPython v1.22.0; Raspberry Pi Pico\r\n>>> ")
        return replies
    return respond


def wait_until(predicate: Callable[[], bool], timeout: float = 3.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


@pytest.fixture(scope="session", autouse=True)
def qt_core_app():
    app = QCoreApplication.instance()
    if app is None:
        app = QCoreApplication([])
    yield app
