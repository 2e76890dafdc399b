# -*- coding: utf-8 -*-
"""
storyboard_chat/extractor.py

这个文件做什么：
- 从 AI 的原始回复（可能是 说明文字 + JSON 代码块，也可能是坏 JSON）里抽出 ExtractedPayload。
- 三个互相独立的解析器按顺序尝试，第一个成功的为准：
  1) ``` 代码块（可带 json 标记）里的 JSON 对象
  2) 整段回复本身就是 JSON 对象，且带 storyboards/characters/scenes/props 之一
  3) 包含 "storyboards" 字面量的最小花括号对象（从最近的 { 往外扩）

实现原则：
- 每个解析器都是“全函数”：失败只返回 None + 打日志，从不抛异常。
- 不做任何 JSON 修复（尾逗号之类）。坏 JSON 在这一层等同于“没有结构化意图”，
  上层会把回复当普通聊天显示。
- json 抛的 ValueError（包括超过位数上限的整数）和嵌套过深的 RecursionError 都按坏 JSON 处理。
- 解析出来的对象如果四个 key 都没有，也算不匹配（防止一段无关 JSON 触发整表替换）。
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Callable, Dict, Optional, Tuple

from storyboard_chat.core.errors import ExtractionMismatch

from .schema import PAYLOAD_KEYS, ExtractedPayload


logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?\s*(\{.*?\})\s*```", flags=re.DOTALL | re.IGNORECASE)
_STORYBOARDS_KEY = '"storyboards"'

# 第 3 步每个 "storyboards" 最多尝试多少个起点，避免超长回复变成平方级
MAX_BRACE_ATTEMPTS = 64

_decoder = json.JSONDecoder()


def _has_payload_keys(obj: Any) -> bool:
	return isinstance(obj, dict) and any(k in obj for k in PAYLOAD_KEYS)


def _snip(s: str, n: int = 120) -> str:
	s = s.replace("\n", " ")
	return s if len(s) <= n else s[:n] + "...(truncated)"


def parse_fenced_block(text: str) -> Optional[Dict[str, Any]]:
	for m in _FENCE_RE.finditer(text):
		body = m.group(1)
		try:
			obj = json.loads(body)
		except (ValueError, RecursionError) as e:
			logger.warning("failed to parse JSON from code block: %s (snip=%s)", e, _snip(body))
			continue

		if _has_payload_keys(obj):
			return obj
		logger.debug("code block JSON has no storyboard keys, skipped")

	return None


def parse_whole_text(text: str) -> Optional[Dict[str, Any]]:
	stripped = text.strip()
	if not stripped.startswith("{"):
		return None

	try:
		obj = json.loads(stripped)
	except (ValueError, RecursionError) as e:
		logger.debug("whole reply is not JSON: %s", e)
		return None

	return obj if _has_payload_keys(obj) else None


def parse_storyboards_object(text: str) -> Optional[Dict[str, Any]]:
	"""
	对每个 "storyboards" 出现位置 k：
	- 从 k 之前最近的 { 开始用 raw_decode 解析（后面跟着废话也没关系）
	- 解析出的对象必须跨过 k 并且顶层有 storyboards
	- 不行就换更外层的 {，也就是从小到大
	"""
	k = text.find(_STORYBOARDS_KEY)
	while k >= 0:
		starts = [i for i in range(k - 1, -1, -1) if text[i] == "{"][:MAX_BRACE_ATTEMPTS]

		for start in starts:
			try:
				obj, end = _decoder.raw_decode(text, start)
			except (ValueError, RecursionError) as e:
				logger.debug("brace candidate at %d failed: %s", start, e)
				continue

			if end > k and isinstance(obj, dict) and "storyboards" in obj:
				return obj

		if starts:
			logger.warning('failed to parse JSON object around "storyboards" at offset %d', k)

		k = text.find(_STORYBOARDS_KEY, k + 1)

	return None


PARSERS: Tuple[Callable[[str], Optional[Dict[str, Any]]], ...] = (
	parse_fenced_block,
	parse_whole_text,
	parse_storyboards_object,
)


def extract(raw_text: str) -> Optional[ExtractedPayload]:
	if not raw_text or not raw_text.strip():
		return None

	for parser in PARSERS:
		obj = parser(raw_text)
		if obj is not None:
			logger.info("structured payload extracted by %s", parser.__name__)
			return ExtractedPayload.from_object(obj)

	return None


def require_payload(raw_text: str) -> ExtractedPayload:
	"""extract 的严格版本：抽不到就抛 ExtractionMismatch（调试脚本用）。"""
	payload = extract(raw_text)
	if payload is None:
		raise ExtractionMismatch(f"no structured payload in reply: {_snip(raw_text or '')}")
	return payload
