import json
from dataclasses import fields
from pathlib import Path
from typing import Optional, Dict, Any

from picorepl.utils.constants import Constants
from picorepl.utils.data_models import SerialPortConfig, SessionConfig
from picorepl.utils.logger import ErrorLogger


class ConfigManager:
    def __init__(self, filename: str = Constants.CONFIG_FILE_NAME, error_logger: Optional[ErrorLogger] = None):
        self.config_file = Path(filename)
        self.error_logger = error_logger

        self.default_config: Dict[str, Any] = {
            "serial_port": vars(SerialPortConfig()),
            "session": vars(SessionConfig()),
            "transcript": {
                "record_on_connect": False,
                "export_dir": "transcripts"
            },
            "last_port_name": None,
        }

    def load_config(self) -> Dict[str, Any]:
        if self.config_file.exists():
            try:
                with open(self.config_file, 'r', encoding='utf-8') as f:
                    loaded_config = json.load(f)

                # 以默认配置为基础，用加载的值覆盖，保证缺失的键仍有默认值
                config_to_return = self._fresh_defaults()

                for key, default_value in self.default_config.items():
                    if key in loaded_config:
                        # 字典段做浅合并，保留加载文件中缺失的默认子键
                        if isinstance(default_value, dict) and isinstance(loaded_config[key], dict):
                            merged_dict = default_value.copy()
                            merged_dict.update(loaded_config[key])
                            config_to_return[key] = merged_dict
                        else:
                            config_to_return[key] = loaded_config[key]

                # 保留默认配置中没有的键（例如旧版本遗留的键）
                for key, value in loaded_config.items():
                    if key not in config_to_return:
                        config_to_return[key] = value

                if self.error_logger:
                    self.error_logger.log_info(f"配置已从 '{self.config_file}' 加载。")
                return config_to_return

            except (OSError, ValueError) as e:
                if self.error_logger:
                    self.error_logger.log_error(f"加载配置文件 '{self.config_file}' 失败: {e}. 使用默认配置。", "CONFIG")
                return self._fresh_defaults()

        if self.error_logger:
            self.error_logger.log_info(f"配置文件 '{self.config_file}' 未找到。使用默认配置。")
        return self._fresh_defaults()

    def save_config(self, config: Dict[str, Any]) -> None:
        try:
            self.config_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_file, 'w', encoding='utf-8') as f:
                json.dump(config, f, indent=4, ensure_ascii=False)
            if self.error_logger:
                self.error_logger.log_info(f"配置已保存到 '{self.config_file}'。")
        except OSError as e:
            if self.error_logger:
                self.error_logger.log_error(f"保存配置文件到 '{self.config_file}' 失败: {e}", "CONFIG")

    def _fresh_defaults(self) -> Dict[str, Any]:
        return {key: (value.copy() if isinstance(value, dict) else value)
                for key, value in self.default_config.items()}


def _dataclass_kwargs(cls, section: Any) -> Dict[str, Any]:
    if not isinstance(section, dict):
        return {}
    known = {f.name for f in fields(cls)}
    return {k: v for k, v in section.items() if k in known}


def serial_config_from(config: Dict[str, Any]) -> SerialPortConfig:
    """从配置字典构建 SerialPortConfig，忽略未知键"""
    return SerialPortConfig(**_dataclass_kwargs(SerialPortConfig, config.get("serial_port")))


def session_config_from(config: Dict[str, Any]) -> SessionConfig:
    """从配置字典构建 SessionConfig，忽略未知键"""
    return SessionConfig(**_dataclass_kwargs(SessionConfig, config.get("session")))
