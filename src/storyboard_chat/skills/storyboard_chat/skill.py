# -*- coding: utf-8 -*-
"""
storyboard_chat/skill.py

这个文件做什么：
- 把“一轮对话”的计算部分封装成一个 skill：
  1) 用户原话 + 当前分镜列表快照 -> user message
  2) 调用 LLM 得到原始回复
  3) 抽取结构化 payload（抽不到就当普通聊天）
  4) reconcile 得到下一版四张列表
- 不碰存储、不写对话记录；这些由 pipeline/session.py 负责。

注意：
- 这里不关心背后是哪家服务，只依赖 ProviderGateway 接口：
  llm_client.send(config, message, history, system_prompt) -> str
- 模型调用失败（ProviderFailure）直接往上抛，由 session 决定怎么展示。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from storyboard_chat.core.config import ProviderConfig
from storyboard_chat.core.schemas import ConversationTurn, EntitySets
from storyboard_chat.providers.llm.base import ProviderGateway

from . import reconciler
from .extractor import extract
from .prompt import SYSTEM_PROMPT, build_user_message
from .schema import ExtractedPayload, Intent


logger = logging.getLogger(__name__)


@dataclass
class ChatRoundResult:
	raw_reply: str
	payload: Optional[ExtractedPayload]
	entities: EntitySets
	summary: str

	@property
	def has_payload(self) -> bool:
		return self.payload is not None


def summarize(intent: Intent, payload: ExtractedPayload, entities: EntitySets) -> str:
	n = payload.shot_count()
	if intent is Intent.FULL_REGENERATE:
		head = f"已重新生成 {n} 个分镜"
	else:
		head = f"已生成 {n} 个分镜，当前共 {len(entities.shots)} 个"

	return (
		f"{head}（角色 {len(entities.characters)}，"
		f"场景 {len(entities.scenes)}，道具 {len(entities.props)}）"
	)


class StoryboardChatSkill:
	def __init__(self, llm_client: ProviderGateway, system_prompt: str = SYSTEM_PROMPT):
		self.llm_client = llm_client
		self.system_prompt = system_prompt

	def call(
		self,
		provider: ProviderConfig,
		message: str,
		history: Sequence[ConversationTurn],
		current: EntitySets,
	) -> str:
		user_message = build_user_message(message, current.shots)
		return self.llm_client.send(provider, user_message, history, system_prompt=self.system_prompt)

	def reconcile(
		self,
		raw_reply: str,
		payload: Optional[ExtractedPayload],
		intent: Intent,
		current: EntitySets,
	) -> ChatRoundResult:
		if payload is None:
			logger.info("no structured payload; treated as plain chat")
			return ChatRoundResult(raw_reply=raw_reply, payload=None, entities=current, summary=raw_reply)

		entities = reconciler.apply(intent, payload, current)
		return ChatRoundResult(
			raw_reply=raw_reply,
			payload=payload,
			entities=entities,
			summary=summarize(intent, payload, entities),
		)

	def run(
		self,
		provider: ProviderConfig,
		message: str,
		history: Sequence[ConversationTurn],
		intent: Intent,
		current: EntitySets,
	) -> ChatRoundResult:
		raw = self.call(provider, message, history, current)
		return self.reconcile(raw, extract(raw), intent, current)
