# -*- coding: utf-8 -*-
"""
storyboard_chat/schema.py

- 领域记录（ShotRecord 等）：从 core.schemas 导入（共享契约）。
- Intent、ExtractedPayload：对话 skill 专用，定义于此。
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from storyboard_chat.core.schemas import EntitySets


__all__ = ["EntitySets", "ExtractedPayload", "Intent", "PAYLOAD_KEYS"]


PAYLOAD_KEYS = ("storyboards", "characters", "scenes", "props")


class Intent(enum.Enum):
	FULL_REGENERATE = "full_regenerate"
	PARTIAL_UPDATE = "partial_update"
	PLAIN = "plain"


@dataclass(frozen=True)
class ExtractedPayload:
	"""
	从 AI 回复里抽出来的结构化数据。

	不可信：
	- 每个 key 可能缺失（None），列表元素是原始 dict，字段类型、字段名都没校验。
	- 只允许交给 payload.coerce_* + reconciler 处理，绝不直接落库。
	"""
	storyboards: Optional[List[Dict[str, Any]]] = None
	characters: Optional[List[Dict[str, Any]]] = None
	scenes: Optional[List[Dict[str, Any]]] = None
	props: Optional[List[Dict[str, Any]]] = None

	@classmethod
	def from_object(cls, obj: Dict[str, Any]) -> "ExtractedPayload":
		"""
		只保留 list 类型的四个 key，list 里只保留 dict 元素；其余一律忽略。
		"""
		lists: Dict[str, Optional[List[Dict[str, Any]]]] = {}
		for k in PAYLOAD_KEYS:
			v = obj.get(k)
			lists[k] = [x for x in v if isinstance(x, dict)] if isinstance(v, list) else None

		return cls(**lists)

	def shot_count(self) -> int:
		return len(self.storyboards or [])
