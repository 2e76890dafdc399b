# -*- coding: utf-8 -*-
"""
providers/llm/chat_client.py

这个文件做什么：
- 一个极薄的 OpenAI 兼容 `/chat/completions` client，实现 ProviderGateway。
- endpoint / key / model 都来自 ProviderConfig（用户在配置里填的 API），
  所以同一个 client 可以打到不同的服务商。
- 对外只暴露一个方法：send(config, message, history, system_prompt) -> str（原始回复文本）

错误约定：
- 网络错误、HTTP 4xx/5xx、返回结构不对、空回复：都抛 ProviderFailure，
  错误信息里带上原始细节（截断到 1000 字），由上层原样展示给用户。
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx

from storyboard_chat.core.config import ProviderConfig, Settings
from storyboard_chat.core.errors import ProviderFailure
from storyboard_chat.core.schemas import ConversationTurn


logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-3.5-turbo"


def _truncate(body: str, n: int = 1000) -> str:
	return body if len(body) <= n else body[:n] + "...(truncated)"


class ChatCompletionsClient:
	def __init__(
		self,
		timeout_s: float = 120.0,
		temperature: float = 0.7,
		transport: Optional[httpx.BaseTransport] = None,
	):
		self.temperature = temperature
		# 读超时跟着配置走，写超时固定短一些
		self._client = httpx.Client(
			timeout=httpx.Timeout(timeout_s, write=10.0),
			transport=transport,
		)

	def close(self) -> None:
		self._client.close()

	def build_messages(
		self,
		message: str,
		history: Sequence[ConversationTurn],
		system_prompt: Optional[str] = None,
	) -> List[Dict[str, str]]:
		messages: List[Dict[str, str]] = []
		if system_prompt:
			messages.append({"role": "system", "content": system_prompt})

		messages.extend(t.to_message() for t in history)
		messages.append({"role": "user", "content": message})
		return messages

	def send(
		self,
		config: ProviderConfig,
		message: str,
		history: Sequence[ConversationTurn],
		system_prompt: Optional[str] = None,
	) -> str:
		url = config.endpoint.rstrip("/") + "/chat/completions"
		payload: Dict[str, Any] = {
			"model": config.model or DEFAULT_MODEL,
			"messages": self.build_messages(message, history, system_prompt),
			"temperature": self.temperature,
		}

		logger.info("provider %s: POST %s (history=%d)", config.name, url, len(history))

		try:
			r = self._client.post(
				url,
				json=payload,
				headers={
					"Authorization": f"Bearer {config.credential}",
					"Content-Type": "application/json",
				},
			)
		except httpx.HTTPError as e:
			raise ProviderFailure(f"请求失败: {e}") from e

		if r.status_code >= 400:
			raise ProviderFailure(f"API 返回错误 ({r.status_code}): {_truncate(r.text)}")

		try:
			data = r.json()
		except json.JSONDecodeError as e:
			raise ProviderFailure(f"解析响应失败: {e}") from e

		try:
			content = data["choices"][0]["message"]["content"]
		except (KeyError, IndexError, TypeError) as e:
			raise ProviderFailure(
				f"Unexpected response shape: {_truncate(json.dumps(data, ensure_ascii=False))}"
			) from e

		if not isinstance(content, str) or not content.strip():
			raise ProviderFailure("API 返回了空响应")

		return content


def load_chat_client(settings: Settings, transport: Optional[httpx.BaseTransport] = None) -> ChatCompletionsClient:
	return ChatCompletionsClient(timeout_s=settings.request_timeout_s, transport=transport)
