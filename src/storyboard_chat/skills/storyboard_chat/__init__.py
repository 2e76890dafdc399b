# -*- coding: utf-8 -*-
"""storyboard_chat skill：一轮对话的提取、意图识别与合并。"""

from .extractor import extract
from .intent import IntentClassifier
from .reconciler import apply
from .schema import ExtractedPayload, Intent

__all__ = ["ExtractedPayload", "Intent", "IntentClassifier", "apply", "extract"]
