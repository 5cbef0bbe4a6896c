"""
异常定义
"""


class AutoClickerError(Exception):
    """所有引擎异常的基类"""
    pass


class StateError(AutoClickerError):
    """调用约定被破坏（start/end 未配对、未绑定画面就匹配等），属于程序缺陷"""
    pass


class MatchError(AutoClickerError):
    """条件图片无效或搜索区域不可读，由处理器就地降级为未匹配"""
    pass


class ConfigError(AutoClickerError):
    """场景配置不合法，拒绝进入运行状态"""
    pass


class ActionError(AutoClickerError):
    """输入注入失败，终止会话"""

    def __init__(self, message: str, action=None):
        super().__init__(message)
        self.action = action


class SourceExhausted(AutoClickerError):
    """有限画面源（如回放目录）已无更多画面，会话正常结束"""
    pass
