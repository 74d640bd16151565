#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
会话错误定义模块

定义 REPL 会话管理中使用的异常类和错误枚举，避免循环导入问题。
"""

from enum import Enum
from typing import Optional


class SessionErrorCode(Enum):
    """会话错误类型枚举"""
    OPEN_FAILURE = "open_failure"
    TRANSPORT_ERROR = "transport_error"
    BUSY = "busy"
    WRITER_UNAVAILABLE = "writer_unavailable"
    SCAN_TIMEOUT = "scan_timeout"
    TRANSACTION_ABORTED = "transaction_aborted"
    CONFIG_ERROR = "config_error"


class ReplSessionException(Exception):
    """会话处理异常基类"""
    def __init__(self, error_type: SessionErrorCode, message: str):
        self.error_type = error_type
        self.detail = message
        super().__init__(f"[{error_type.value}] {message}")


class OpenFailure(ReplSessionException):
    """串口无法打开，会话保持 DISCONNECTED"""
    def __init__(self, message: str, port_name: Optional[str] = None):
        self.port_name = port_name
        super().__init__(SessionErrorCode.OPEN_FAILURE, message)


class TransportError(ReplSessionException):
    """读写过程中的传输层错误，会触发断开"""
    def __init__(self, message: str, cause: Optional[BaseException] = None):
        self.cause = cause
        super().__init__(SessionErrorCode.TRANSPORT_ERROR, message)


class BusyError(ReplSessionException):
    """与正在进行的操作冲突，状态不变"""
    def __init__(self, message: str):
        super().__init__(SessionErrorCode.BUSY, message)


class WriterUnavailableError(ReplSessionException):
    """没有打开的连接时尝试写入"""
    def __init__(self, message: str = "没有打开的串口连接"):
        super().__init__(SessionErrorCode.WRITER_UNAVAILABLE, message)


class ScanTimeoutError(ReplSessionException):
    """等待标记超时"""
    def __init__(self, message: str, marker: Optional[str], partial_text: str = ""):
        self.marker = marker
        self.partial_text = partial_text
        super().__init__(SessionErrorCode.SCAN_TIMEOUT, message)


class TransactionAbortedError(ReplSessionException):
    """事务扫描被外部取消"""
    def __init__(self, message: str, partial_text: str = ""):
        self.partial_text = partial_text
        super().__init__(SessionErrorCode.TRANSACTION_ABORTED, message)
