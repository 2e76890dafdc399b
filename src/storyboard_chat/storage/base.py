# -*- coding: utf-8 -*-
"""
storage/base.py

PersistenceGateway 接口（协议）：
- 按项目句柄（项目目录）读写四张实体表和对话记录。
- commit 是原子单位：四张表（以及可选的一条助手消息）要么全部写入，要么保持原状。
- 所有失败都抛 StorageFailure。
"""

from __future__ import annotations

from typing import List, Optional, Protocol

from storyboard_chat.core.schemas import ConversationTurn, EntitySets


class PersistenceGateway(Protocol):
	def load_entities(self, handle: str) -> EntitySets:
		...

	def load_transcript(self, handle: str, limit: int) -> List[ConversationTurn]:
		...

	def commit(
		self,
		handle: str,
		entities: EntitySets,
		is_full_regenerate: bool,
		turn: Optional[ConversationTurn] = None,
	) -> None:
		...

	def append_turn(self, handle: str, role: str, content: str) -> ConversationTurn:
		...
