# -*- coding: utf-8 -*-
"""storyboard_chat：对话式分镜表生成（提取 -> 意图 -> 合并 -> 落盘）。"""

__version__ = "0.1.0"
