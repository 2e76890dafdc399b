# -*- coding: utf-8 -*-
"""测试用替身：内存存储 + 假模型（不连网、不落盘）。"""

from __future__ import annotations

from typing import Callable, List, Optional, Sequence

import pytest

from storyboard_chat.core.config import GlobalConfig, ProviderConfig
from storyboard_chat.core.errors import StorageFailure
from storyboard_chat.core.schemas import ConversationTurn, EntitySets


class MemoryGateway:
	"""PersistenceGateway 的内存版；fail_commit / fail_append 为 True 时对应的写操作抛 StorageFailure。"""

	def __init__(self, entities: Optional[EntitySets] = None):
		self.entities = entities or EntitySets()
		self.turns: List[ConversationTurn] = []
		self.commits: List[bool] = []
		self.fail_commit = False
		self.fail_append = False

	def load_entities(self, handle: str) -> EntitySets:
		return self.entities

	def load_transcript(self, handle: str, limit: int) -> List[ConversationTurn]:
		if limit <= 0:
			return []
		return list(self.turns[-limit:])

	def append_turn(self, handle: str, role: str, content: str) -> ConversationTurn:
		if self.fail_append:
			raise StorageFailure("disk full")
		turn = ConversationTurn(role=role, content=content, turn_id=len(self.turns) + 1, timestamp=0)
		self.turns.append(turn)
		return turn

	def commit(
		self,
		handle: str,
		entities: EntitySets,
		is_full_regenerate: bool,
		turn: Optional[ConversationTurn] = None,
	) -> None:
		if self.fail_commit:
			raise StorageFailure("disk full")
		self.entities = entities
		self.commits.append(is_full_regenerate)
		if turn is not None:
			self.append_turn(handle, turn.role, turn.content)


class FakeLLM:
	"""
	ProviderGateway 的假实现。
	reply 可以是字符串、异常实例，或者 callable（调用时执行，用来模拟“请求途中发生了什么”）。
	"""

	def __init__(self, reply="好的"):
		self.reply = reply
		self.calls: List[dict] = []

	def send(
		self,
		config: ProviderConfig,
		message: str,
		history: Sequence[ConversationTurn],
		system_prompt: Optional[str] = None,
	) -> str:
		self.calls.append({
			"config": config,
			"message": message,
			"history": list(history),
			"system_prompt": system_prompt,
		})
		if isinstance(self.reply, Exception):
			raise self.reply
		if callable(self.reply):
			return self.reply()
		return self.reply


def text_provider(**kw) -> ProviderConfig:
	data = dict(id="p1", name="test", kind="text", endpoint="https://llm.test/v1", credential="sk-test")
	data.update(kw)
	return ProviderConfig(**data)


@pytest.fixture
def gateway() -> MemoryGateway:
	return MemoryGateway()


@pytest.fixture
def global_config() -> GlobalConfig:
	return GlobalConfig(providers=[text_provider(is_default=True)])


@pytest.fixture
def make_session(gateway, global_config) -> Callable:
	from storyboard_chat.pipeline.session import ProjectSession

	def _make(llm: FakeLLM, **kw) -> ProjectSession:
		s = ProjectSession(
			handle="/tmp/project",
			gateway=kw.pop("gateway", gateway),
			llm_client=llm,
			global_config=kw.pop("global_config", global_config),
			**kw,
		)
		s.open()
		return s

	return _make
