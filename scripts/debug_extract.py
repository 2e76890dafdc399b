# -*- coding: utf-8 -*-
"""
scripts/debug_extract.py

这个脚本做什么：
- 读取一份保存下来的 AI 回复（默认 docs/reply.txt），不调用任何模型。
- 依次跑 extractor -> intent -> reconciler，打印：
  1) 抽取是否成功、由哪个解析器命中（开 --verbose 看日志）
  2) payload 里四个列表各有几条
  3) reconcile 之后的分镜预览（前 N 条）
- 可选 --project_dir：以该项目当前的分镜为基础做合并（只读，不会写库）。

使用方式：
1) 把模型原始回复存成文本：docs/reply.txt
2) 运行：
   python scripts/debug_extract.py --message "在 A3 后面插入一个镜头"
   python scripts/debug_extract.py --in_path docs/reply.txt --project_dir ./my_project --verbose
"""

from __future__ import annotations

import argparse
import logging

from storyboard_chat.core.errors import ExtractionMismatch
from storyboard_chat.core.io import project_paths
from storyboard_chat.core.schemas import EntitySets
from storyboard_chat.skills.storyboard_chat.extractor import require_payload
from storyboard_chat.skills.storyboard_chat.intent import IntentClassifier
from storyboard_chat.skills.storyboard_chat.reconciler import apply
from storyboard_chat.skills.storyboard_chat.skill import summarize


def build_argparser() -> argparse.ArgumentParser:
	p = argparse.ArgumentParser()
	p.add_argument("--in_path", default="docs/reply.txt", help="AI 原始回复文本路径（UTF-8）")
	p.add_argument("--message", default="", help="对应的用户消息，用来判断意图")
	p.add_argument("--project_dir", default=None, help="以该项目当前分镜为基础（只读）")
	p.add_argument("--preview", type=int, default=8, help="预览前 N 条分镜")
	p.add_argument("--verbose", action="store_true")
	return p


def main() -> None:
	args = build_argparser().parse_args()
	logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

	with open(args.in_path, "r", encoding="utf-8") as f:
		raw = f.read()

	current = EntitySets()
	if args.project_dir and project_paths(args.project_dir).is_project():
		from storyboard_chat.storage.sqlite_store import SQLiteProjectStore
		current = SQLiteProjectStore().load_entities(args.project_dir)
	print(f"[current] shots={len(current.shots)}")

	try:
		payload = require_payload(raw)
	except ExtractionMismatch as e:
		print(f"[extract] none -> plain chat ({e})")
		return

	print(
		f"[extract] storyboards={len(payload.storyboards or [])} characters={len(payload.characters or [])} "
		f"scenes={len(payload.scenes or [])} props={len(payload.props or [])}"
	)

	intent = IntentClassifier().classify(args.message, current.has_storyboard())
	entities = apply(intent, payload, current)
	print(f"[reconcile] intent={intent.value} -> {summarize(intent, payload, entities)}")

	print(f"\n--- preview shots (first {args.preview}) ---")
	for s in entities.shots[: args.preview]:
		snip = (s.description or "-").replace("\n", " ")
		if len(snip) > 160:
			snip = snip[:160] + "..."
		print(f"{s.sequence_number:03d} [{s.mirror_id}] {snip}")


if __name__ == "__main__":
	main()
