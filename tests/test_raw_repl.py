"""raw REPL 控制序列构建测试"""
import ast
import os
import sys

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from picorepl.core.raw_repl import (
    quote_for_device, build_run_code_sequence, build_read_file_sequence,
    build_file_push_instructions, build_file_push_sequence, normalize_file_output
)


class TestQuoting:
    def test_quotes_and_backslashes_escaped(self):
        assert quote_for_device('say "hi"\\') == '"say \\"hi\\"\\\\"'

    @pytest.mark.parametrize("text", ["print('🐍')", "温度=25℃", "tab\there \x03 \\ \"q\""])
    def test_device_literal_round_trip(self, text):
        """设备端解析出的字符串与原文一致，包括 BMP 之外的字符"""
        assert ast.literal_eval(quote_for_device(text)) == text

    def test_non_ascii_kept_literal(self):
        assert quote_for_device("🐍") == '"🐍"'

    def test_newline_becomes_escape(self):
        assert quote_for_device("a\n") == '"a\\n"'


class TestRunCode:
    def test_sequence_frames_code(self):
        assert build_run_code_sequence("print(1)") == b"\x01print(1)\x04\x02"

    def test_code_sent_verbatim(self):
        code = "x = '日本'\r\nprint(x)"
        assert build_run_code_sequence(code) == b"\x01" + code.encode("utf-8") + b"\x04\x02"


class TestReadFile:
    def test_sequence(self):
        assert build_read_file_sequence("main.py") == (
            b'\x01import os\r'
            b'with open("main.py") as f:\r'
            b'  print(f.read())\r'
            b'\x04'
        )

    def test_file_name_is_quoted(self):
        assert b'open("my \\"file\\".py")' in build_read_file_sequence('my "file".py')


class TestFilePush:
    def test_trailing_newline_skips_empty_last_line(self):
        """文件以换行结尾时不生成多余的空写入"""
        assert build_file_push_instructions("temp.py", "a\nb\n") == [
            'with open("temp.py", "w") as f:\r',
            '  f.write("a\\n")\r',
            '  f.write("b\\n")\r',
        ]

    def test_last_line_without_newline(self):
        instructions = build_file_push_instructions("temp.py", "a\nb")
        assert instructions[-1] == '  f.write("b")'
        assert not instructions[-1].endswith("\r")

    def test_crlf_content_is_normalized(self):
        instructions = build_file_push_instructions("temp.py", "a\r\nb\r\n")
        assert instructions[1:] == ['  f.write("a\\n")\r', '  f.write("b\\n")\r']

    def test_empty_content_still_compiles(self):
        """空文件也要生成合法的 with 语句块，保证文件被截断"""
        instructions = build_file_push_instructions("empty.py", "")
        assert instructions == ['with open("empty.py", "w") as f:\r', "  pass\r"]
        compile("".join(instructions).replace("\r", "\n"), "<device>", "exec")

    @pytest.mark.parametrize("content", ["a\nb\n", "x = '🐍'", "\n\n", "if True:\r\n    pass"])
    def test_push_body_compiles(self, content):
        body = "".join(build_file_push_instructions("temp.py", content)).replace("\r", "\n")
        compile(body, "<device>", "exec")

    def test_blank_lines_are_preserved(self):
        instructions = build_file_push_instructions("temp.py", "a\n\nb")
        assert instructions[1:] == ['  f.write("a\\n")\r', '  f.write("\\n")\r', '  f.write("b")']

    def test_sequence_is_wrapped_in_raw_mode(self):
        sequence = build_file_push_sequence("temp.py", "print('é')\n")
        assert sequence.startswith(b'\x01with open("temp.py", "w") as f:\r')
        assert sequence.endswith(b'\x04')
        assert "é".encode("utf-8") in sequence


class TestNormalizeFileOutput:
    @pytest.mark.parametrize("raw, expected", [
        ("line1\r\nline2\r\n", "line1\nline2"),
        ("line1\r\nline2\r\n\r\n", "line1\nline2\n"),
        ("", ""),
        ("\r\n", ""),
        ("no newline", "no newline"),
    ])
    def test_normalize(self, raw, expected):
        assert normalize_file_output(raw) == expected
