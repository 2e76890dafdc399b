# -*- coding: utf-8 -*-
"""
storyboard_chat/intent.py

这个文件做什么：
- 看用户这句话是想“整表重做”、“局部改动（插入/拆分/合并）”还是普通聊天。
- 规则是一张有序表 (pattern, Intent)，按顺序匹配，第一条命中的为准。
  规则只是数据：换语言/换说法只需要换表，不用改 reconciler。

注意：
- 意图只决定“要不要先让用户确认”和“替换还是合并”，不影响 JSON 抽取。
- 没有现成分镜时，“重做”没有可覆盖的东西，按 PARTIAL_UPDATE 处理。
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Pattern, Tuple

from storyboard_chat.core.errors import ValidationFailure

from .schema import Intent


@dataclass(frozen=True)
class IntentRule:
	pattern: Pattern[str]
	intent: Intent


def rule(pattern: str, intent: Intent) -> IntentRule:
	return IntentRule(pattern=re.compile(pattern, flags=re.IGNORECASE), intent=intent)


DEFAULT_RULES: Tuple[IntentRule, ...] = (
	rule(r"重做|重新生成|重做一版|重新做|覆盖", Intent.FULL_REGENERATE),
	rule(r"\b(redo|regenerate|overwrite)\b|start over|from scratch", Intent.FULL_REGENERATE),
	rule(r"插入|新增分镜|拆分|拆开|合并", Intent.PARTIAL_UPDATE),
	rule(r"\b(insert|split|merge)\b|\badd (a |another |new )?shots?\b", Intent.PARTIAL_UPDATE),
)


class IntentClassifier:
	def __init__(self, rules: Iterable[IntentRule] = DEFAULT_RULES):
		self.rules = tuple(rules)

	@classmethod
	def from_json(cls, path: str | Path) -> "IntentClassifier":
		"""
		规则文件格式：[{"pattern": "...", "intent": "full_regenerate"}, ...]
		规则文件写错属于配置错误，这里直接报 ValidationFailure。
		"""
		try:
			data = json.loads(Path(path).read_text(encoding="utf-8"))
			rules = [rule(d["pattern"], Intent(d["intent"])) for d in data]
		except (OSError, ValueError, KeyError, TypeError, re.error) as e:
			raise ValidationFailure(f"invalid intent rule file {path}: {e}") from e

		return cls(rules)

	def match(self, user_message: str) -> Intent:
		for r in self.rules:
			if r.pattern.search(user_message or ""):
				return r.intent
		return Intent.PLAIN

	def classify(self, user_message: str, has_existing_storyboard: bool) -> Intent:
		intent = self.match(user_message)

		if intent is Intent.FULL_REGENERATE and not has_existing_storyboard:
			return Intent.PARTIAL_UPDATE

		return intent
