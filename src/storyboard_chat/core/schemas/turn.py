# -*- coding: utf-8 -*-
"""
storyboard_chat/core/schemas/turn.py

ConversationTurn：对话记录里的一条消息。只追加，不修改、不删除。
turn_id / timestamp 由存储层在写入时分配，内存里新建的 turn 没有这两个值。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional


ROLE_USER = "user"
ROLE_ASSISTANT = "assistant"
ROLES = (ROLE_USER, ROLE_ASSISTANT)


@dataclass(frozen=True)
class ConversationTurn:
	role: str
	content: str
	turn_id: Optional[int] = None
	timestamp: Optional[int] = None

	def __post_init__(self) -> None:
		if self.role not in ROLES:
			raise ValueError(f"invalid role: {self.role}")

	def to_message(self) -> Dict[str, str]:
		"""chat/completions 的 messages 元素。"""
		return {"role": self.role, "content": self.content}
