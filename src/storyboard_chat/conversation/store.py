# -*- coding: utf-8 -*-
"""
storyboard_chat/conversation/store.py

ConversationStore：一个项目的对话记录。
- 只追加，从不修改或删除已有消息。
- recent(limit) 每次都从存储重新读，返回 list（最新的在最后），可以反复调用。
- 带实体提交的助手消息走 commit_with_turn，和四张表在同一个事务里落盘。
"""

from __future__ import annotations

import logging
from typing import List

from storyboard_chat.core.schemas import ROLE_ASSISTANT, ROLE_USER, ConversationTurn, EntitySets
from storyboard_chat.storage.base import PersistenceGateway


logger = logging.getLogger(__name__)


class ConversationStore:
	def __init__(self, gateway: PersistenceGateway, handle: str):
		self.gateway = gateway
		self.handle = handle

	def append(self, turn: ConversationTurn) -> ConversationTurn:
		saved = self.gateway.append_turn(self.handle, turn.role, turn.content)
		logger.debug("turn appended: role=%s chars=%d", turn.role, len(turn.content))
		return saved

	def append_user(self, content: str) -> ConversationTurn:
		return self.append(ConversationTurn(role=ROLE_USER, content=content))

	def append_assistant(self, content: str) -> ConversationTurn:
		return self.append(ConversationTurn(role=ROLE_ASSISTANT, content=content))

	def recent(self, limit: int) -> List[ConversationTurn]:
		return list(self.gateway.load_transcript(self.handle, limit))

	def commit_with_turn(self, entities: EntitySets, is_full_regenerate: bool, turn: ConversationTurn) -> None:
		self.gateway.commit(self.handle, entities, is_full_regenerate, turn=turn)
