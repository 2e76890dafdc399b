# -*- coding: utf-8 -*-
"""
providers/llm/base.py

ProviderGateway 接口（协议）：skill 只依赖它，不关心背后是哪家模型服务。
失败一律抛 ProviderFailure（带原始错误信息），不做自动重试。
"""

from __future__ import annotations

from typing import Optional, Protocol, Sequence

from storyboard_chat.core.config import ProviderConfig
from storyboard_chat.core.schemas import ConversationTurn


class ProviderGateway(Protocol):
	def send(
		self,
		config: ProviderConfig,
		message: str,
		history: Sequence[ConversationTurn],
		system_prompt: Optional[str] = None,
	) -> str:
		...
