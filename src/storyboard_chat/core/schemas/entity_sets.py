# -*- coding: utf-8 -*-
"""
storyboard_chat/core/schemas/entity_sets.py

EntitySets：一个项目的四张列表（分镜/角色/场景/道具）打包成一个不可变快照。
- reconciler 输入输出都是它
- 展示层只拿快照，不允许原地修改
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Tuple

from .assets import CharacterEntity, PropEntity, SceneEntity
from .shot import ShotRecord


@dataclass(frozen=True)
class EntitySets:
	shots: Tuple[ShotRecord, ...] = ()
	characters: Tuple[CharacterEntity, ...] = ()
	scenes: Tuple[SceneEntity, ...] = ()
	props: Tuple[PropEntity, ...] = ()

	def has_storyboard(self) -> bool:
		return len(self.shots) > 0

	def is_empty(self) -> bool:
		return not (self.shots or self.characters or self.scenes or self.props)

	def to_dict(self) -> Dict[str, Any]:
		return {
			"storyboards": [s.to_dict() for s in self.shots],
			"characters": [c.to_dict() for c in self.characters],
			"scenes": [s.to_dict() for s in self.scenes],
			"props": [p.to_dict() for p in self.props],
		}
