# -*- coding: utf-8 -*-
"""chat/completions client 测试：用 httpx.MockTransport，不连网。"""

from __future__ import annotations

import json

import httpx
import pytest

from storyboard_chat.core.errors import ProviderFailure
from storyboard_chat.core.schemas import ConversationTurn
from storyboard_chat.providers.llm.chat_client import DEFAULT_MODEL, ChatCompletionsClient

from conftest import text_provider


def _client(handler) -> ChatCompletionsClient:
	return ChatCompletionsClient(timeout_s=5, transport=httpx.MockTransport(handler))


def _ok(content):
	return httpx.Response(200, json={"choices": [{"message": {"role": "assistant", "content": content}}]})


class TestChatCompletionsClient:
	def test_request_shape(self):
		seen = {}

		def handler(request: httpx.Request) -> httpx.Response:
			seen["url"] = str(request.url)
			seen["auth"] = request.headers.get("authorization")
			seen["body"] = json.loads(request.content)
			return _ok("分镜已更新")

		client = _client(handler)
		history = [
			ConversationTurn(role="user", content="第一句"),
			ConversationTurn(role="assistant", content="第一答"),
		]
		out = client.send(text_provider(endpoint="https://llm.test/v1/"), "第二句", history, system_prompt="SYS")

		assert out == "分镜已更新"
		assert seen["url"] == "https://llm.test/v1/chat/completions"
		assert seen["auth"] == "Bearer sk-test"
		assert seen["body"]["model"] == DEFAULT_MODEL
		assert [m["role"] for m in seen["body"]["messages"]] == ["system", "user", "assistant", "user"]
		assert seen["body"]["messages"][-1]["content"] == "第二句"

	def test_model_override(self):
		seen = {}

		def handler(request):
			seen["body"] = json.loads(request.content)
			return _ok("ok")

		_client(handler).send(text_provider(model="gpt-4o"), "hi", [])
		assert seen["body"]["model"] == "gpt-4o"
		assert seen["body"]["messages"] == [{"role": "user", "content": "hi"}]

	def test_http_error(self):
		client = _client(lambda request: httpx.Response(500, text="upstream exploded"))
		with pytest.raises(ProviderFailure, match="500"):
			client.send(text_provider(), "hi", [])

	def test_empty_reply(self):
		client = _client(lambda request: _ok("   "))
		with pytest.raises(ProviderFailure, match="空响应"):
			client.send(text_provider(), "hi", [])

	def test_bad_shape(self):
		client = _client(lambda request: httpx.Response(200, json={"error": "nope"}))
		with pytest.raises(ProviderFailure, match="Unexpected response shape"):
			client.send(text_provider(), "hi", [])

	def test_not_json(self):
		client = _client(lambda request: httpx.Response(200, text="<html>"))
		with pytest.raises(ProviderFailure):
			client.send(text_provider(), "hi", [])

	def test_network_error(self):
		def handler(request):
			raise httpx.ConnectError("refused", request=request)

		with pytest.raises(ProviderFailure, match="请求失败"):
			_client(handler).send(text_provider(), "hi", [])
