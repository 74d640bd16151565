# picorepl/__init__.py

# PicoREPL Studio: MicroPython 串口 REPL 会话管理

__version__ = "0.1.0"
