#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
REPL 会话管理模块

ReplSession 独占一条串口字节流，在两种用途之间仲裁：
- 透传：PassthroughReadThread 持续读取并通过信号把文本交给终端控件；
- 事务：暂停透传，写入 raw REPL 控制序列，扫描到标记为止取回响应，
  无论成功失败都在串口仍打开时恢复透传。

任一时刻只有一个读租约（透传或事务扫描），所有写入经由同一个 WriterGate。
"""

import threading
from contextlib import contextmanager
from enum import Enum
from typing import Optional, Callable, Any, List, Iterable

from PySide6.QtCore import QObject, Signal, QThread, QRecursiveMutex, Qt

from picorepl.core.raw_repl import (
    build_run_code_sequence, build_read_file_sequence, build_file_push_sequence, normalize_file_output
)
from picorepl.core.scanning_reader import ScanningReader, NO_MARKER
from picorepl.core.serial_transport import SerialTransport
from picorepl.core.session_errors import (
    ReplSessionException, OpenFailure, TransportError, BusyError, WriterUnavailableError, TransactionAbortedError
)
from picorepl.core.transcript_recorder import TranscriptRecorder
from picorepl.core.writer_gate import WriterGate
from picorepl.utils.constants import Constants
from picorepl.utils.data_models import SerialPortConfig, SessionConfig
from picorepl.utils.logger import ErrorLogger


class SessionState(Enum):
    DISCONNECTED = "Disconnected"
    CONNECTING = "Connecting"
    STREAMING = "Streaming"
    EXECUTING = "Executing"
    CLOSING = "Closing"


class PassthroughReadThread(QThread):
    """透传读取线程：无标记扫描，逐块发出解码后的文本"""
    data_received = Signal(str)
    read_failed = Signal(str)
    stream_ended = Signal()

    def __init__(self, reader: ScanningReader, error_logger: Optional[ErrorLogger] = None,
                 parent: Optional[QObject] = None):
        super().__init__(parent)
        self.reader = reader
        self.error_logger = error_logger
        self._cancel_event = threading.Event()
        self._thread_ident: Optional[int] = None

    def run(self):
        self._thread_ident = threading.get_ident()
        if self.error_logger:
            self.error_logger.log_info("PassthroughReadThread started")
        try:
            self.reader.scan(NO_MARKER, observer=self.data_received.emit,
                             cancel_event=self._cancel_event, accumulate=False)
        except ReplSessionException as e:
            self.read_failed.emit(str(e))
        else:
            if not self._cancel_event.is_set():
                self.stream_ended.emit()
        if self.error_logger:
            self.error_logger.log_info("PassthroughReadThread stopped")

    def stop(self):
        self._cancel_event.set()

    def is_current_thread(self) -> bool:
        return self._thread_ident == threading.get_ident()


class ReplSession(QObject):
    state_changed = Signal(str)
    connection_status_changed = Signal(bool, str)  # is_connected, message
    terminal_data_received = Signal(str)
    error_occurred_signal = Signal(str)

    def __init__(self, error_logger: Optional[ErrorLogger] = None, parent: Optional[QObject] = None,
                 session_config: Optional[SessionConfig] = None,
                 port_factory: Optional[Callable[..., Any]] = None,
                 transcript_recorder: Optional[TranscriptRecorder] = None):
        super().__init__(parent)
        self.error_logger = error_logger
        self.session_config = session_config or SessionConfig()
        self.transport = SerialTransport(port_factory, error_logger, self.session_config.read_chunk_size)
        self.writer_gate = WriterGate(self.transport, error_logger)
        self.reader = ScanningReader(self.transport, self.session_config.encoding, error_logger)
        self.transcript_recorder = transcript_recorder

        self._state = SessionState.DISCONNECTED
        self._state_mutex = QRecursiveMutex()
        self._transaction_active = False
        # 事务扫描共用的取消事件，扫描之间的 abort 也不会丢失
        self._abort_event = threading.Event()
        self._passthrough_thread: Optional[PassthroughReadThread] = None
        self._retired_threads: List[PassthroughReadThread] = []

    # ------------------------------------------------------------------ 状态

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state in (SessionState.STREAMING, SessionState.EXECUTING)

    def _set_state(self, new_state: SessionState) -> None:
        old_state = self._state
        if old_state is new_state:
            return
        self._state = new_state
        if self.error_logger:
            self.error_logger.log_info(f"会话状态: {old_state.value} -> {new_state.value}", "SESSION")
        self.state_changed.emit(new_state.value)

    # ------------------------------------------------------------------ 连接

    def connect_port(self, config: SerialPortConfig) -> None:
        self._state_mutex.lock()
        try:
            if self._state is not SessionState.DISCONNECTED:
                raise BusyError(f"会话当前状态为 {self._state.value}，不能再次连接")
            self._set_state(SessionState.CONNECTING)
        finally:
            self._state_mutex.unlock()

        try:
            self.transport.open(config)
        except OpenFailure as e:
            self._state_mutex.lock()
            try:
                self._set_state(SessionState.DISCONNECTED)
            finally:
                self._state_mutex.unlock()
            self.connection_status_changed.emit(False, e.detail)
            raise

        self.reader.reset()
        self._state_mutex.lock()
        try:
            self._set_state(SessionState.STREAMING)
            self._start_passthrough()
        finally:
            self._state_mutex.unlock()
        self.connection_status_changed.emit(True, f"已连接 {config.port_name} @ {config.baud_rate}")

    def disconnect_port(self) -> None:
        """断开连接；已经断开时为空操作"""
        self._teardown("串口已关闭")
        # 透传线程因读取失败自行断开时，在这里等待它退出
        self._reap_retired_threads()

    def _teardown(self, reason: str,
                  expected_states: Iterable[SessionState] = (SessionState.STREAMING, SessionState.EXECUTING)) -> bool:
        self._state_mutex.lock()
        try:
            if self._state not in tuple(expected_states):
                return False
            self._set_state(SessionState.CLOSING)
        finally:
            self._state_mutex.unlock()

        if self.error_logger:
            self.error_logger.log_info(f"断开串口连接: {reason}", "SESSION")
        # 正在进行的事务扫描在下一个数据块边界退出
        self.reader.cancel()
        self._stop_passthrough()
        try:
            self.transport.close()
        except TransportError as e:
            if self.error_logger:
                self.error_logger.log_error(str(e), "CONNECTION")
        self.reader.reset()

        self._state_mutex.lock()
        try:
            self._set_state(SessionState.DISCONNECTED)
        finally:
            self._state_mutex.unlock()
        self.connection_status_changed.emit(False, reason)
        return True

    # ------------------------------------------------------------------ 透传

    def _start_passthrough(self) -> None:
        self._reap_retired_threads()
        thread = PassthroughReadThread(self.reader, error_logger=self.error_logger)
        thread.data_received.connect(self._on_passthrough_data, Qt.ConnectionType.DirectConnection)
        thread.read_failed.connect(self._on_passthrough_failed, Qt.ConnectionType.DirectConnection)
        thread.stream_ended.connect(self._on_passthrough_ended, Qt.ConnectionType.DirectConnection)
        self._passthrough_thread = thread
        thread.start()

    def _stop_passthrough(self) -> None:
        thread = self._passthrough_thread
        self._passthrough_thread = None
        if thread is not None:
            thread.stop()
            if thread.is_current_thread():
                # 透传线程自身触发的断开：扫描已结束，线程返回后再回收
                self._retired_threads.append(thread)
            else:
                thread.wait()
        self._reap_retired_threads()

    def _reap_retired_threads(self) -> None:
        still_running = []
        for thread in self._retired_threads:
            if thread.is_current_thread():
                still_running.append(thread)
            else:
                thread.wait()
        self._retired_threads = still_running

    def _on_passthrough_data(self, text: str) -> None:
        if self.transcript_recorder:
            self.transcript_recorder.record("RX", text)
        self.terminal_data_received.emit(text)

    def _on_passthrough_failed(self, message: str) -> None:
        if self.error_logger:
            self.error_logger.log_error(f"透传读取失败: {message}", "READ")
        self.error_occurred_signal.emit(message)
        self._teardown(f"串口连接已断开: {message}", expected_states=(SessionState.STREAMING,))

    def _on_passthrough_ended(self) -> None:
        self._teardown("串口已被设备关闭", expected_states=(SessionState.STREAMING,))

    # ------------------------------------------------------------------ 写入

    def _send(self, data: bytes) -> None:
        try:
            self.writer_gate.send(data)
        except TransportError as e:
            self.error_occurred_signal.emit(str(e))
            self._teardown(f"串口写入失败: {e}")
            raise
        if self.transcript_recorder:
            self.transcript_recorder.record("TX", data.decode(self.session_config.encoding, errors="replace"))

    def send_raw(self, text: str) -> None:
        """透传按键：只在 STREAMING 状态下允许"""
        self._state_mutex.lock()
        try:
            if self._state is SessionState.EXECUTING:
                raise BusyError("事务执行中，终端输入被拒绝")
            if self._state is not SessionState.STREAMING:
                raise WriterUnavailableError()
        finally:
            self._state_mutex.unlock()
        self._send(text.encode(self.session_config.encoding))

    def interrupt(self) -> None:
        """发送 CTRL-C；事务执行中同样允许"""
        if self._state not in (SessionState.STREAMING, SessionState.EXECUTING):
            raise WriterUnavailableError()
        self._send(Constants.CTRL_C)

    # ------------------------------------------------------------------ 事务

    @contextmanager
    def _transaction(self):
        self._begin_transaction()
        failure: Optional[TransportError] = None
        try:
            yield
        except TransportError as e:
            failure = e
            raise
        finally:
            self._end_transaction(failure)

    def _begin_transaction(self) -> None:
        self._state_mutex.lock()
        try:
            if self._transaction_active or self._state is SessionState.EXECUTING:
                raise BusyError("已有事务正在执行")
            if self._state in (SessionState.CONNECTING, SessionState.CLOSING):
                raise BusyError(f"会话当前状态为 {self._state.value}")
            if self._state is not SessionState.STREAMING or not self.transport.is_open:
                raise WriterUnavailableError()
            self._transaction_active = True
            self._abort_event.clear()
        finally:
            self._state_mutex.unlock()

        # 先停止透传并等待其读租约释放，再进入 EXECUTING
        self._stop_passthrough()
        self._state_mutex.lock()
        try:
            if self._state is SessionState.STREAMING:
                self._set_state(SessionState.EXECUTING)
                return
        finally:
            self._state_mutex.unlock()
        # 停止透传期间连接已被关闭
        self._transaction_active = False
        raise WriterUnavailableError("事务开始前串口连接已断开")

    def _end_transaction(self, failure: Optional[TransportError]) -> None:
        if failure is not None:
            if self.error_logger:
                self.error_logger.log_error(f"事务失败: {failure}", "TRANSACTION")
            self._transaction_active = False
            self._abort_event.clear()
            self._teardown(f"串口连接已断开: {failure.detail}")
            return

        self._state_mutex.lock()
        try:
            self._transaction_active = False
            self._abort_event.clear()
            if self._state is not SessionState.EXECUTING:
                return
            if self.transport.is_open:
                self._set_state(SessionState.STREAMING)
                self._start_passthrough()
                return
        finally:
            self._state_mutex.unlock()
        self._teardown("串口已被设备关闭", expected_states=(SessionState.EXECUTING,))

    def _scan_for(self, marker: Optional[str]) -> str:
        text = self.reader.scan(marker, timeout=self.session_config.scan_timeout_s, cancel_event=self._abort_event)
        if self.reader.last_scan_cancelled:
            raise TransactionAbortedError(f"等待标记 {marker!r} 时事务被取消", text)
        return text

    def run_transaction(self, control_sequence: bytes, marker: Optional[str]) -> str:
        """暂停透传，发送控制序列，扫描到 marker 为止并返回其前的文本"""
        if self.error_logger:
            self.error_logger.log_info(f"开始事务，{len(control_sequence)} 字节，标记 {marker!r}", "TRANSACTION")
        with self._transaction():
            self._send(control_sequence)
            return self._scan_for(marker)

    def abort_transaction(self) -> None:
        """取消当前事务：正在进行和之后的扫描都立即结束；没有事务时为空操作"""
        self._state_mutex.lock()
        try:
            if self._transaction_active:
                self._abort_event.set()
        finally:
            self._state_mutex.unlock()

    def run_code(self, code: str) -> None:
        """raw 模式执行代码；收到 OK 应答后程序输出经透传显示在终端"""
        self.run_transaction(build_run_code_sequence(code, self.session_config.encoding),
                             Constants.RAW_REPL_ACK_MARKER)

    def read_file(self, file_name: Optional[str] = None) -> str:
        file_name = file_name or self.session_config.default_file_name
        with self._transaction():
            self._send(build_read_file_sequence(file_name, self.session_config.encoding))
            self._scan_for(Constants.RAW_REPL_ACK_MARKER)
            raw_text = self._scan_for(Constants.RAW_OUTPUT_END_MARKER)
            self._send(Constants.CTRL_B)
        if self.error_logger:
            self.error_logger.log_info(f"已读取设备文件 {file_name}: {len(raw_text)} 字符", "TRANSACTION")
        return normalize_file_output(raw_text)

    def write_file(self, file_name: str, content: str) -> None:
        with self._transaction():
            self._send(build_file_push_sequence(file_name, content, self.session_config.encoding))
            self._scan_for(Constants.RAW_REPL_ACK_MARKER)
            self._scan_for(Constants.RAW_OUTPUT_END_MARKER)
            self._send(Constants.CTRL_B)
        if self.error_logger:
            self.error_logger.log_info(f"已写入设备文件 {file_name}", "TRANSACTION")
