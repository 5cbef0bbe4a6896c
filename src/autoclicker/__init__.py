"""图像条件自动点击引擎"""

__version__ = "0.1.0"
