# -*- coding: utf-8 -*-
"""
storyboard_chat/core/schemas/shot.py

ShotRecord：分镜表的一行（一个镜头），reconciler 与存储层的共享契约。
- core 定义，skills / storage 使用。
- 不依赖任何业务层（LLM、数据库等）。
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional


# 除 sequence_number / mirror_id 之外可以被 AI 覆盖的字段（合并时逐字段判断）
SHOT_CONTENT_FIELDS = (
	"shot_type",
	"shot_size",
	"duration",
	"dialogue",
	"description",
	"notes",
	"image_prompt_zh",
	"image_prompt_en",
	"image_prompt_tail_zh",
	"image_prompt_tail_en",
	"video_prompt_zh",
	"video_prompt_en",
)


@dataclass(frozen=True)
class ShotRecord:
	"""
	一个镜头。

	sequence_number：
	- 显示顺序，1..n 连续；每次 reconcile 之后按列表顺序重新编号

	mirror_id：
	- 镜号（A1、A8-1 这种），项目内唯一，是合并时的匹配键
	- 和 sequence_number 不是一回事：插入镜头会改变序号，但不改变镜号

	duration：
	- 秒，可选，非负
	"""
	sequence_number: int
	mirror_id: str
	shot_type: Optional[str] = None
	shot_size: Optional[str] = None
	duration: Optional[float] = None
	dialogue: Optional[str] = None
	description: Optional[str] = None
	notes: Optional[str] = None
	image_prompt_zh: Optional[str] = None
	image_prompt_en: Optional[str] = None
	image_prompt_tail_zh: Optional[str] = None
	image_prompt_tail_en: Optional[str] = None
	video_prompt_zh: Optional[str] = None
	video_prompt_en: Optional[str] = None

	def to_dict(self) -> Dict[str, Any]:
		return asdict(self)
