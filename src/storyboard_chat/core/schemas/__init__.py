# -*- coding: utf-8 -*-
"""core.schemas：领域数据结构的统一出口。"""

from .assets import AssetEntity, CharacterEntity, PropEntity, SceneEntity
from .entity_sets import EntitySets
from .shot import ShotRecord
from .turn import ROLE_ASSISTANT, ROLE_USER, ConversationTurn

__all__ = [
	"AssetEntity",
	"CharacterEntity",
	"ConversationTurn",
	"EntitySets",
	"PropEntity",
	"ROLE_ASSISTANT",
	"ROLE_USER",
	"SceneEntity",
	"ShotRecord",
]
