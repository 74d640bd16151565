# picorepl/core/__init__.py

# This makes the directory a Python package.

from .session_errors import (
    SessionErrorCode, ReplSessionException, OpenFailure, TransportError, BusyError,
    WriterUnavailableError, ScanTimeoutError, TransactionAbortedError
)
from .serial_transport import SerialTransport, ReadLease, WriteLease, list_available_ports
from .writer_gate import WriterGate
from .scanning_reader import ScanningReader, NO_MARKER
from .raw_repl import (
    build_run_code_sequence, build_read_file_sequence, build_file_push_instructions,
    build_file_push_sequence, normalize_file_output
)
from .transcript_recorder import TranscriptRecorder
from .repl_session import ReplSession, SessionState, PassthroughReadThread

__all__ = [
    "SessionErrorCode",
    "ReplSessionException",
    "OpenFailure",
    "TransportError",
    "BusyError",
    "WriterUnavailableError",
    "ScanTimeoutError",
    "TransactionAbortedError",
    "SerialTransport",
    "ReadLease",
    "WriteLease",
    "list_available_ports",
    "WriterGate",
    "ScanningReader",
    "NO_MARKER",
    "build_run_code_sequence",
    "build_read_file_sequence",
    "build_file_push_instructions",
    "build_file_push_sequence",
    "normalize_file_output",
    "TranscriptRecorder",
    "ReplSession",
    "SessionState",
    "PassthroughReadThread",
]
