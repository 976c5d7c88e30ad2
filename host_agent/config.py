"""
配置管理模块

从 YAML 文件加载配置，支持环境变量覆盖（前缀 HOST_AGENT_，嵌套字段用 __ 分隔）。
"""

import os
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseConfig(BaseModel):
    """汇聚数据库配置"""
    path: str = Field(default="data/host_agent.db", description="SQLite 文件路径")
    timeout: int = Field(default=30, description="连接等待锁的超时（秒）")


class APIConfig(BaseModel):
    """HTTP 查询接口配置"""
    listen: str = Field(default="0.0.0.0:9109", description="监听地址")
    token: Optional[str] = Field(default=None, description="认证 Token，为空时不校验")

    @property
    def host(self) -> str:
        """获取监听主机"""
        return self.listen.rsplit(":", 1)[0]

    @property
    def port(self) -> int:
        """获取监听端口"""
        return int(self.listen.rsplit(":", 1)[1])


class CollectorConfig(BaseModel):
    """采集配置"""
    disks: List[str] = Field(default=["/"], description="统计 disk_used 的挂载点")


class RollupConfig(BaseModel):
    """多级汇聚配置"""
    enabled: bool = True
    tick_interval: float = Field(default=1.0, description="采样节拍（秒）")
    seed_from_history: bool = Field(default=True, description="启动时从数据库回填上层窗口")


class ReportConfig(BaseModel):
    """实时上报配置"""
    enabled: bool = False
    url: Optional[str] = Field(default=None, description="中心节点 WebSocket 地址")
    token: Optional[str] = None
    interval: float = Field(default=60.0, description="interval 模式下的上报间隔（秒）")
    realtime_interval: float = Field(default=1.0, description="realtime 模式下的上报间隔（秒）")
    send_timeout: float = Field(default=10.0, description="单次发送超时（秒）")
    max_backoff: int = Field(default=60, description="重连退避上限（秒）")


class LoggingConfig(BaseModel):
    """日志配置"""
    level: str = "INFO"
    file: Optional[str] = None
    max_size_mb: int = 50
    backup_count: int = 5


class AppConfig(BaseSettings):
    """应用配置（完整配置）"""

    model_config = SettingsConfigDict(
        env_prefix="HOST_AGENT_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    api: APIConfig = Field(default_factory=APIConfig)
    collector: CollectorConfig = Field(default_factory=CollectorConfig)
    rollup: RollupConfig = Field(default_factory=RollupConfig)
    report: ReportConfig = Field(default_factory=ReportConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        # 环境变量优先于配置文件
        return env_settings, init_settings, file_secret_settings


def load_config(config_path: Optional[str] = None) -> AppConfig:
    """
    加载配置文件

    优先级：
    1. 参数指定的路径
    2. 环境变量 HOST_AGENT_CONFIG
    3. 默认路径 config.yaml

    文件不存在时使用默认配置（仍然应用环境变量覆盖）。
    """
    if config_path is None:
        config_path = os.environ.get("HOST_AGENT_CONFIG", "config.yaml")

    config_file = Path(config_path)
    raw_config = {}
    if config_file.exists():
        with open(config_file, "r", encoding="utf-8") as f:
            raw_config = yaml.safe_load(f) or {}

        # 相对路径以配置文件所在目录为基准，避免依赖 CWD
        base_dir = config_file.resolve().parent
        for section, key in (("database", "path"), ("logging", "file")):
            value = (raw_config.get(section) or {}).get(key)
            if value and not Path(value).is_absolute():
                raw_config[section][key] = str((base_dir / value).resolve())

    return AppConfig(**raw_config)


# 全局配置实例（延迟加载）
_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """获取全局配置实例（单例模式）"""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reset_config():
    """重置配置（主要用于测试）"""
    global _config
    _config = None
