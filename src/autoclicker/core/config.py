"""
核心配置模块
"""
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """系统配置"""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # 日志
    log_level: str = Field(default="INFO")
    log_path: str = Field(default="./logs")
    log_retention_days: int = Field(default=3)
    log_console_enabled: bool = Field(default=True)
    log_file_enabled: bool = Field(default=True)

    # 检测引擎
    detection_quality: int = Field(default=600, description="匹配时画面长边的目标像素数")
    matcher_backend: str = Field(default="cpu", description="cpu / opencl")
    tick_interval_ms: int = Field(default=100)
    frame_retry_interval_ms: int = Field(default=200)

    # 调试
    debug_enabled: bool = Field(default=True)
    debug_channel_buffer_size: int = Field(default=32)

    # 线程池（<=0 表示自动）
    compute_thread_pool_size: int = Field(default=0)
    io_thread_pool_size: int = Field(default=0)

    # ADB
    adb_path: str = Field(default="adb")
    adb_addr: str = Field(default="127.0.0.1:5555")


# 全局配置实例
settings = Settings()
