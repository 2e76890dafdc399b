# -*- coding: utf-8 -*-
"""
storyboard_chat/payload.py

这个文件做什么：
- 把 ExtractedPayload 里的原始 dict 清洗成 reconciler 能直接用的结构。
- AI 输出不可信：类型错、字段名不统一、空字符串、负数时长都可能出现。

清洗规则：
- 字符串字段：去首尾空白，空串视为“没给”；数字会转成字符串；其它类型丢弃。
- duration：非负有限数字（或 "3"、"3s"、"3秒" 这种字符串），否则视为没给。
- sequence_number：正整数（或纯数字字符串），否则视为没给。
- 资产没有 name 的整条丢弃。
- 这里从不抛异常：清洗不了的字段直接丢，reconciler 会保留旧值。
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from storyboard_chat.core.schemas.assets import ASSET_CONTENT_FIELDS, ASSET_FIELD_ALIASES
from storyboard_chat.core.schemas.shot import SHOT_CONTENT_FIELDS


logger = logging.getLogger(__name__)

_CAMEL_RE = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")

SHOT_FIELD_ALIASES = {
	"duration_seconds": "duration",
	"duration_s": "duration",
}


@dataclass
class IncomingShot:
	"""
	fields 里只放“给了且有效”的字段；缺席表示保留现值。
	"""
	mirror_id: Optional[str]
	sequence_number: Optional[int]
	fields: Dict[str, Any] = field(default_factory=dict)


@dataclass
class IncomingAsset:
	name: str
	fields: Dict[str, Any] = field(default_factory=dict)


def clean_text(v: Any) -> Optional[str]:
	if isinstance(v, bool):
		return None
	if isinstance(v, (int, float)):
		try:
			return str(v)
		except ValueError:  # 超长整数
			return None
	if not isinstance(v, str):
		return None

	v = v.strip()
	return v or None


def clean_duration(v: Any) -> Optional[float]:
	if isinstance(v, bool):
		return None
	if isinstance(v, str):
		v = v.strip().rstrip("sS秒").strip()
	if not isinstance(v, (str, int, float)):
		return None

	try:
		v = float(v)
	except (ValueError, OverflowError):
		return None
	if not math.isfinite(v) or v < 0:
		return None
	return v


def clean_sequence_number(v: Any) -> Optional[int]:
	if isinstance(v, bool):
		return None
	if isinstance(v, str):
		v = v.strip()
		if not v.isdecimal():
			return None
		try:
			v = int(v)
		except ValueError:
			return None
	if isinstance(v, float) and v.is_integer():
		v = int(v)
	if isinstance(v, int) and v > 0:
		return v
	return None


def normalize_keys(raw: Dict[str, Any], aliases: Dict[str, str]) -> Dict[str, Any]:
	"""
	mirrorId -> mirror_id 这类驼峰转下划线，再套别名表。
	同一字段两种写法都给了的话，下划线正式名优先。
	"""
	out: Dict[str, Any] = {}
	for k, v in raw.items():
		if not isinstance(k, str):
			continue
		nk = _CAMEL_RE.sub("_", k).lower()
		if nk != k and nk in raw:
			continue
		out[nk] = v

	for alias, k in aliases.items():
		if alias in out:
			v = out.pop(alias)
			out.setdefault(k, v)

	return out


def coerce_shot(raw: Dict[str, Any]) -> IncomingShot:
	raw = normalize_keys(raw, SHOT_FIELD_ALIASES)

	fields: Dict[str, Any] = {}
	for k in SHOT_CONTENT_FIELDS:
		if k not in raw:
			continue
		v = clean_duration(raw[k]) if k == "duration" else clean_text(raw[k])
		if v is not None:
			fields[k] = v

	return IncomingShot(
		mirror_id=clean_text(raw.get("mirror_id")),
		sequence_number=clean_sequence_number(raw.get("sequence_number")),
		fields=fields,
	)


def coerce_asset(raw: Dict[str, Any]) -> Optional[IncomingAsset]:
	raw = normalize_keys(raw, ASSET_FIELD_ALIASES)

	name = clean_text(raw.get("name"))
	if name is None:
		logger.debug("asset without name dropped: keys=%s", sorted(raw.keys()))
		return None

	fields: Dict[str, Any] = {}
	for k in ASSET_CONTENT_FIELDS:
		v = clean_text(raw.get(k))
		if v is not None:
			fields[k] = v

	return IncomingAsset(name=name, fields=fields)


def coerce_shots(items: Optional[List[Dict[str, Any]]]) -> List[IncomingShot]:
	return [coerce_shot(x) for x in items or []]


def coerce_assets(items: Optional[List[Dict[str, Any]]]) -> List[IncomingAsset]:
	out = []
	for x in items or []:
		a = coerce_asset(x)
		if a is not None:
			out.append(a)
	return out
