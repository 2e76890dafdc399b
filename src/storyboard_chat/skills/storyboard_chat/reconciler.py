# -*- coding: utf-8 -*-
"""
storyboard_chat/reconciler.py

这个文件做什么：
- 根据意图，把 AI 给出的 payload 和当前的四张列表合成“下一版”四张列表。
- 这是纯函数：输入 -> 输出，不读写数据库、不调用模型。

两种策略：
- FULL_REGENERATE：丢掉现有全部数据，结果就是 payload 本身
  （缺的 key 视为空列表；镜号重复时后出现的加 -2/-3 后缀）。
- PARTIAL_UPDATE / PLAIN：按 mirror_id（资产按 name）匹配；
  命中则逐字段覆盖（只覆盖给了值的字段），没命中就新增。
  新镜头带了可用的 sequence_number 就插到那个位置，否则追加到末尾。
- 没有 payload：原样返回。

无论哪种，最后都按列表顺序把 sequence_number 重排成 1..n。
"""

from __future__ import annotations

from collections import Counter
from dataclasses import replace
from typing import Dict, Iterable, List, Optional, Set, Tuple, Type, TypeVar

from storyboard_chat.core.schemas import (
	AssetEntity,
	CharacterEntity,
	EntitySets,
	PropEntity,
	SceneEntity,
	ShotRecord,
)

from .payload import IncomingAsset, IncomingShot, coerce_assets, coerce_shots
from .schema import ExtractedPayload, Intent


A = TypeVar("A", bound=AssetEntity)


def apply(intent: Intent, payload: Optional[ExtractedPayload], current: EntitySets) -> EntitySets:
	if payload is None:
		return current

	if intent is Intent.FULL_REGENERATE:
		return _regenerate(payload)

	return _merge(payload, current)


def renumber(shots: Iterable[ShotRecord]) -> Tuple[ShotRecord, ...]:
	return tuple(
		s if s.sequence_number == i else replace(s, sequence_number=i)
		for i, s in enumerate(shots, start=1)
	)


def generate_mirror_id(taken: Set[str]) -> str:
	k = 1
	while f"A{k}" in taken:
		k += 1
	return f"A{k}"


def suffixed_mirror_id(base: str, taken: Set[str]) -> str:
	k = 2
	while f"{base}-{k}" in taken:
		k += 1
	return f"{base}-{k}"


def _regenerate(payload: ExtractedPayload) -> EntitySets:
	incoming = coerce_shots(payload.storyboards)

	# payload 里出现过的镜号都预留，后缀/生成的镜号不能和它们撞
	reserved = {s.mirror_id for s in incoming if s.mirror_id}
	seen: Set[str] = set()
	shots: List[ShotRecord] = []

	for inc in incoming:
		if inc.mirror_id is None:
			mid = generate_mirror_id(reserved | seen)
		elif inc.mirror_id in seen:
			mid = suffixed_mirror_id(inc.mirror_id, reserved | seen)
		else:
			mid = inc.mirror_id

		seen.add(mid)
		shots.append(ShotRecord(sequence_number=len(shots) + 1, mirror_id=mid, **inc.fields))

	return EntitySets(
		shots=renumber(shots),
		characters=merge_assets((), coerce_assets(payload.characters), CharacterEntity),
		scenes=merge_assets((), coerce_assets(payload.scenes), SceneEntity),
		props=merge_assets((), coerce_assets(payload.props), PropEntity),
	)


def _merge(payload: ExtractedPayload, current: EntitySets) -> EntitySets:
	return EntitySets(
		shots=merge_shots(current.shots, coerce_shots(payload.storyboards)),
		characters=merge_assets(current.characters, coerce_assets(payload.characters), CharacterEntity),
		scenes=merge_assets(current.scenes, coerce_assets(payload.scenes), SceneEntity),
		props=merge_assets(current.props, coerce_assets(payload.props), PropEntity),
	)


def merge_shots(current: Iterable[ShotRecord], incoming: List[IncomingShot]) -> Tuple[ShotRecord, ...]:
	work = list(current)
	pos = {s.mirror_id: i for i, s in enumerate(work)}
	taken = set(pos) | {s.mirror_id for s in incoming if s.mirror_id}

	# 新镜头：[requested_seq, record]，同一镜号在 payload 里出现多次时合成一条
	new: List[list] = []
	new_pos: Dict[str, int] = {}

	for inc in incoming:
		if inc.mirror_id is not None and inc.mirror_id in pos:
			i = pos[inc.mirror_id]
			work[i] = replace(work[i], **inc.fields)
			continue

		if inc.mirror_id is not None and inc.mirror_id in new_pos:
			entry = new[new_pos[inc.mirror_id]]
			entry[1] = replace(entry[1], **inc.fields)
			if entry[0] is None:
				entry[0] = inc.sequence_number
			continue

		mid = inc.mirror_id or generate_mirror_id(taken)
		taken.add(mid)
		new_pos[mid] = len(new)
		new.append([inc.sequence_number, ShotRecord(sequence_number=0, mirror_id=mid, **inc.fields)])

	# 只有一个新镜头认领的序号才算“明确”
	claims = Counter(seq for seq, _ in new if seq is not None)
	positioned = sorted(
		(seq, order, rec) for order, (seq, rec) in enumerate(new)
		if seq is not None and claims[seq] == 1
	)
	trailing = [rec for seq, rec in new if seq is None or claims[seq] > 1]

	for seq, _, rec in positioned:
		work.insert(min(seq - 1, len(work)), rec)
	work.extend(trailing)

	return renumber(work)


def merge_assets(current: Iterable[A], incoming: List[IncomingAsset], cls: Type[A]) -> Tuple[A, ...]:
	work = list(current)
	pos: Dict[str, int] = {}
	for i, a in enumerate(work):
		pos.setdefault(a.name, i)

	for inc in incoming:
		if inc.name in pos:
			i = pos[inc.name]
			work[i] = replace(work[i], **inc.fields)
			continue

		pos[inc.name] = len(work)
		work.append(cls(name=inc.name, **inc.fields))

	return tuple(work)
