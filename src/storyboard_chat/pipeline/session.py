# -*- coding: utf-8 -*-
"""
storyboard_chat/pipeline/session.py

目的：
- ProjectSession：一个打开的项目 = 一个会话对象，替代“全局 UI 状态”。
- 负责一轮对话的状态机、确认重做、忙碌拒绝、取消、原子提交和提交后重新加载。
- 展示层只拿 EntitySets 快照、只发命令（send/close），不直接改状态。

一轮对话的状态：
AWAITING_INPUT -> PENDING_CONFIRMATION（仅“重做”且已有分镜）-> CONFIRMED | ABORTED
-> CALLING_PROVIDER -> EXTRACTING -> RECONCILING -> PERSISTING -> AWAITING_INPUT

失败处理：
- ValidationFailure（没配 text API、空消息、项目已关闭、正忙）：直接抛给调用方，不发请求。
- ProviderFailure / StorageFailure：追加一条助手错误消息（前缀 + 原始错误），状态回到 AWAITING_INPUT，
  四张表保持提交前的样子；异常同时放在 TurnResult.error 里。错误消息本身写不进去时只记日志。
- 项目在本轮提交之前被关闭：模型结果直接丢弃，不落盘。
"""

from __future__ import annotations

import enum
import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional

from storyboard_chat.conversation.store import ConversationStore
from storyboard_chat.core.config import GlobalConfig, Settings, load_global_config, resolve_provider
from storyboard_chat.core.documents import extract_document_text
from storyboard_chat.core.errors import (
	ProviderFailure,
	SessionBusy,
	StorageFailure,
	StoryboardError,
	ValidationFailure,
)
from storyboard_chat.core.schemas import ROLE_ASSISTANT, ConversationTurn, EntitySets
from storyboard_chat.providers.llm.base import ProviderGateway
from storyboard_chat.skills.storyboard_chat.extractor import extract
from storyboard_chat.skills.storyboard_chat.intent import IntentClassifier
from storyboard_chat.skills.storyboard_chat.schema import Intent
from storyboard_chat.skills.storyboard_chat.skill import StoryboardChatSkill
from storyboard_chat.storage.base import PersistenceGateway


logger = logging.getLogger(__name__)

REGENERATE_CONFIRM_TEXT = "重做将会清空当前所有分镜数据并重新生成，包括您手动修改的内容。\n\n是否确认重做？"
ABORT_TEXT = "已取消重做。"
PROVIDER_ERROR_PREFIX = "调用 AI 失败: "
STORAGE_ERROR_PREFIX = "保存分镜失败: "

ConfirmCallback = Callable[[str], bool]


class TurnState(enum.Enum):
	AWAITING_INPUT = "awaiting_input"
	PENDING_CONFIRMATION = "pending_confirmation"
	CONFIRMED = "confirmed"
	ABORTED = "aborted"
	CALLING_PROVIDER = "calling_provider"
	EXTRACTING = "extracting"
	RECONCILING = "reconciling"
	PERSISTING = "persisting"


# TurnResult.status
APPLIED = "applied"
REPLIED = "replied"
ABORTED = "aborted"
FAILED = "failed"
CANCELLED = "cancelled"


@dataclass
class TurnResult:
	"""
	reply：给用户看的文字（结构化回复时是摘要，普通回复时是原文，失败时是错误消息）
	entities：本轮结束后的快照（失败/取消时就是本轮开始时的快照）
	"""
	status: str
	intent: Optional[Intent]
	reply: str
	entities: EntitySets
	error: Optional[StoryboardError] = None


class ProjectSession:
	def __init__(
		self,
		handle: str,
		gateway: PersistenceGateway,
		llm_client: ProviderGateway,
		global_config: GlobalConfig,
		classifier: Optional[IntentClassifier] = None,
		history_limit: int = 10,
		on_close: Optional[Callable[[], None]] = None,
	):
		self.handle = str(handle)
		self.gateway = gateway
		self.store = ConversationStore(gateway, self.handle)
		self.skill = StoryboardChatSkill(llm_client)
		self.global_config = global_config
		self.classifier = classifier or IntentClassifier()
		self.history_limit = history_limit
		self.state = TurnState.AWAITING_INPUT

		self._entities: Optional[EntitySets] = None
		self._lock = threading.Lock()
		self._closed = threading.Event()
		self._on_close = on_close

	# ---------- 查询 ----------

	@property
	def closed(self) -> bool:
		return self._closed.is_set()

	@property
	def busy(self) -> bool:
		return self._lock.locked()

	def open(self) -> EntitySets:
		self._entities = self.gateway.load_entities(self.handle)
		return self._entities

	def snapshot(self) -> EntitySets:
		if self._entities is None:
			return self.open()
		return self._entities

	def transcript(self, limit: Optional[int] = None) -> List[ConversationTurn]:
		return self.store.recent(self.history_limit if limit is None else limit)

	# ---------- 命令 ----------

	def close(self) -> None:
		"""关闭项目：之后到达的模型结果一律丢弃。"""
		if self.closed:
			return
		self._closed.set()
		logger.info("session %s closed", self.handle)
		if self._on_close is not None:
			self._on_close()

	def load_document(self, path: str | Path) -> str:
		self._ensure_open()
		text = extract_document_text(path)
		if self.closed:
			raise ValidationFailure("项目已关闭")
		return text

	def send(self, message: str, confirm: Optional[ConfirmCallback] = None) -> TurnResult:
		message = (message or "").strip()
		if not message:
			raise ValidationFailure("消息不能为空")
		self._ensure_open()

		if not self._lock.acquire(blocking=False):
			raise SessionBusy("上一条消息还在处理中，请稍候")

		try:
			return self._run_turn(message, confirm)
		finally:
			self.state = TurnState.AWAITING_INPUT
			self._lock.release()

	# ---------- 内部 ----------

	def _ensure_open(self) -> None:
		if self.closed:
			raise ValidationFailure("项目已关闭")

	def _run_turn(self, message: str, confirm: Optional[ConfirmCallback]) -> TurnResult:
		# 没有 text API 时在这里就失败，不写对话、不发请求
		provider = resolve_provider(self.global_config, "text")

		current = self.snapshot()
		try:
			history = self.store.recent(self.history_limit)
			self.store.append_user(message)
		except StorageFailure as e:
			return self._fail(None, current, STORAGE_ERROR_PREFIX + str(e), e)

		intent = self.classifier.classify(message, current.has_storyboard())
		logger.info("turn intent=%s shots=%d", intent.value, len(current.shots))

		if intent is Intent.FULL_REGENERATE:
			self.state = TurnState.PENDING_CONFIRMATION
			if confirm is None or not confirm(REGENERATE_CONFIRM_TEXT):
				self.state = TurnState.ABORTED
				try:
					self.store.append_assistant(ABORT_TEXT)
				except StorageFailure as e:
					return self._fail(intent, current, STORAGE_ERROR_PREFIX + str(e), e)
				return TurnResult(status=ABORTED, intent=intent, reply=ABORT_TEXT, entities=current)
			self.state = TurnState.CONFIRMED

		self.state = TurnState.CALLING_PROVIDER
		try:
			raw = self.skill.call(provider, message, history, current)
		except ProviderFailure as e:
			if self.closed:
				return self._cancelled(intent, current)
			return self._fail(intent, current, PROVIDER_ERROR_PREFIX + str(e), e)

		if self.closed:
			return self._cancelled(intent, current)

		self.state = TurnState.EXTRACTING
		payload = extract(raw)

		self.state = TurnState.RECONCILING
		result = self.skill.reconcile(raw, payload, intent, current)

		if not result.has_payload:
			try:
				self.store.append_assistant(raw)
			except StorageFailure as e:
				return self._fail(intent, current, STORAGE_ERROR_PREFIX + str(e), e)
			return TurnResult(status=REPLIED, intent=intent, reply=raw, entities=current)

		if self.closed:
			return self._cancelled(intent, current)

		self.state = TurnState.PERSISTING
		turn = ConversationTurn(role=ROLE_ASSISTANT, content=raw)
		try:
			self.store.commit_with_turn(result.entities, intent is Intent.FULL_REGENERATE, turn)
		except StorageFailure as e:
			return self._fail(intent, current, STORAGE_ERROR_PREFIX + str(e), e)

		# 提交后以存储为准重新加载，内存里只是缓存
		try:
			entities = self.open()
		except StorageFailure as e:
			self._entities = None
			return self._fail(intent, result.entities, "重新加载分镜失败: " + str(e), e)

		return TurnResult(status=APPLIED, intent=intent, reply=result.summary, entities=entities)

	def _cancelled(self, intent: Intent, current: EntitySets) -> TurnResult:
		logger.info("session %s closed mid-turn; result discarded", self.handle)
		return TurnResult(status=CANCELLED, intent=intent, reply="", entities=current)

	def _fail(self, intent: Optional[Intent], entities: EntitySets, text: str, err: StoryboardError) -> TurnResult:
		logger.error("turn failed: %s", text)
		try:
			self.store.append_assistant(text)
		except StorageFailure as e:
			# 错误消息也写不进去时只记日志，结果照常返回
			logger.error("failed to record error turn: %s", e)
		return TurnResult(status=FAILED, intent=intent, reply=text, entities=entities, error=err)


def open_project_session(
	project_dir: str | Path,
	settings: Settings,
	gateway: Optional[PersistenceGateway] = None,
	llm_client: Optional[ProviderGateway] = None,
	classifier: Optional[IntentClassifier] = None,
) -> ProjectSession:
	"""
	按默认组件拼一个会话：SQLite 存储 + httpx chat client + 全局配置文件。
	settings 里配了意图规则文件时，用它替换内置规则表。
	自己创建的 http client 由会话负责关闭。
	"""
	from storyboard_chat.providers.llm.chat_client import load_chat_client
	from storyboard_chat.storage.sqlite_store import SQLiteProjectStore

	global_config = load_global_config(settings.config_path)
	if classifier is None and settings.intent_rules_path is not None:
		classifier = IntentClassifier.from_json(settings.intent_rules_path)

	on_close = None
	if llm_client is None:
		client = load_chat_client(settings)
		llm_client = client
		on_close = client.close

	session = ProjectSession(
		handle=str(Path(project_dir).resolve()),
		gateway=gateway or SQLiteProjectStore(),
		llm_client=llm_client,
		global_config=global_config,
		classifier=classifier,
		history_limit=settings.history_limit,
		on_close=on_close,
	)
	try:
		session.open()
	except StorageFailure:
		session.close()
		raise
	return session
