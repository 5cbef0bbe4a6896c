"""
常量和枚举定义
"""
from enum import Enum


class ConditionOperator(str, Enum):
    """条件组合方式"""
    AND = "and"  # 全部匹配
    OR = "or"  # 任一匹配


class DetectionType(str, Enum):
    """条件检测方式"""
    EXACT = "exact"  # 仅在条件区域内搜索
    WHOLE_SCREEN = "whole_screen"  # 全屏搜索


class ProcessorState(str, Enum):
    """场景处理器状态"""
    IDLE = "idle"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"


class StopReason(str, Enum):
    """会话结束原因"""
    END_CONDITION = "end_condition"  # 结束条件满足
    CANCELLED = "cancelled"  # 外部请求停止
    ACTION_FAILED = "action_failed"  # 动作注入失败
    MAX_TICKS = "max_ticks"  # 达到最大帧数
    ERROR = "error"  # 未预期的异常
    SOURCE_EXHAUSTED = "source_exhausted"  # 画面源已耗尽


class MatcherBackend(str, Enum):
    """图像匹配后端"""
    CPU = "cpu"
    OPENCL = "opencl"


# 检测质量（画面长边像素）下限
DETECTION_QUALITY_MIN = 400
DEFAULT_DETECTION_QUALITY = 600
