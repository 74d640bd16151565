#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
MicroPython raw REPL 控制序列构建模块

只负责按设备解释器的约定拼装字节序列：
CTRL-A 进入 raw 模式，CTRL-D 执行缓冲内容，CTRL-B 回到普通 REPL，CTRL-C 中断。
不解析程序语义。
"""

import json
from typing import List

from picorepl.utils.constants import Constants


def quote_for_device(text: str) -> str:
    """把文本转成设备端 Python 可解析的字符串字面量

    非 ASCII 字符原样保留，BMP 之外的字符不能转义成代理对。
    """
    return json.dumps(text, ensure_ascii=False)


def build_run_code_sequence(code: str, encoding: str = Constants.DEFAULT_ENCODING) -> bytes:
    return Constants.CTRL_A + code.encode(encoding) + Constants.CTRL_D + Constants.CTRL_B


def build_read_file_sequence(file_name: str, encoding: str = Constants.DEFAULT_ENCODING) -> bytes:
    lines = [
        "import os\r",
        f"with open({quote_for_device(file_name)}) as f:\r",
        "  print(f.read())\r",
    ]
    return Constants.CTRL_A + "".join(lines).encode(encoding) + Constants.CTRL_D


def build_file_push_instructions(file_name: str, content: str) -> List[str]:
    """
    生成写文件的设备端指令行。

    content 按 '\\n' 切分，每行去掉行尾的 \\r/\\n 后重新补上 '\\n' 写入；
    最后一行不补换行，且为空时跳过，避免多写一次空的 f.write。
    内容为空时补一条 pass，with 语句块不能为空，文件仍会被截断。
    """
    instructions = [f"with open({quote_for_device(file_name)}, \"w\") as f:\r"]
    lines = content.split("\n")
    last_index = len(lines) - 1
    for i, line in enumerate(lines):
        sanitized_line = line.rstrip("\r\n")
        if i == last_index:
            if sanitized_line:
                instructions.append(f"  f.write({quote_for_device(sanitized_line)})")
        else:
            sanitized_line += "\n"
            instructions.append(f"  f.write({quote_for_device(sanitized_line)})\r")
    if len(instructions) == 1:
        instructions.append("  pass\r")
    return instructions


def build_file_push_sequence(file_name: str, content: str, encoding: str = Constants.DEFAULT_ENCODING) -> bytes:
    body = "".join(build_file_push_instructions(file_name, content))
    return Constants.CTRL_A + body.encode(encoding) + Constants.CTRL_D


def normalize_file_output(raw_text: str) -> str:
    """设备 print 输出使用 \\r\\n 并额外追加一个换行，还原成文件原文"""
    text = raw_text.replace("\r\n", "\n")
    if text.endswith("\n"):
        text = text[:-1]
    return text
