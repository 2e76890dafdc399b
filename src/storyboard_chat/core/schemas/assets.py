# -*- coding: utf-8 -*-
"""
storyboard_chat/core/schemas/assets.py

角色 / 场景 / 道具：按 name 识别的轻量资产记录。
三者字段完全一致，只是分别存放在三张表里，所以共用一个基类。
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional


ASSET_CONTENT_FIELDS = (
	"description",
	"image_prompt_zh",
	"image_prompt_en",
	"notes",
)

# AI 经常用别的字段名，读取时统一映射
ASSET_FIELD_ALIASES = {
	"prompt_cn": "image_prompt_zh",
	"prompt_en": "image_prompt_en",
	"remarks": "notes",
}


@dataclass(frozen=True)
class AssetEntity:
	name: str
	description: Optional[str] = None
	image_prompt_zh: Optional[str] = None
	image_prompt_en: Optional[str] = None
	notes: Optional[str] = None

	def to_dict(self) -> Dict[str, Any]:
		return asdict(self)


@dataclass(frozen=True)
class CharacterEntity(AssetEntity):
	pass


@dataclass(frozen=True)
class SceneEntity(AssetEntity):
	pass


@dataclass(frozen=True)
class PropEntity(AssetEntity):
	pass
