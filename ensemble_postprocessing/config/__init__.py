"""
配置模块
"""

from .settings import *
