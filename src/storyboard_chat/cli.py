# -*- coding: utf-8 -*-
"""
storyboard_chat/cli.py

目的：
- 提供项目的命令行入口。
- init    ：创建项目目录骨架和空数据库。
- chat    ：发一条消息（可 --file 读入剧本文件），按回复更新分镜表。
- show    ：打印当前分镜/角色/场景/道具。
- history ：打印最近的对话记录。
- provider：管理 API 配置（add/list/remove/default）。

注意：
- CLI 不做业务细节：不解析回复、不合并分镜。
- CLI 只负责参数解析 + 把任务交给 pipeline/session.py，再把结果打印出来。
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import uuid
from pathlib import Path
from typing import Optional

from storyboard_chat.core.config import (
	PROVIDER_KINDS,
	ProviderConfig,
	Settings,
	load_global_config,
	load_settings,
	remove_provider,
	save_global_config,
	set_default_provider,
	upsert_provider,
)
from storyboard_chat.core.errors import StoryboardError, ValidationFailure
from storyboard_chat.core.io import project_paths


def build_parser() -> argparse.ArgumentParser:
	p = argparse.ArgumentParser(
		prog="storyboard-chat",
		description="Conversational storyboard builder (chat -> shots/characters/scenes/props)",
	)
	p.add_argument("--config_dir", default=None, help="全局配置目录，缺省 ~/.storyboard 或 STORYBOARD_CONFIG_DIR")
	p.add_argument("--log_level", default=None, help="DEBUG/INFO/WARNING，缺省读 STORYBOARD_LOG_LEVEL")
	p.add_argument("--rules", default=None, help="意图规则文件（JSON），缺省读 STORYBOARD_INTENT_RULES，再缺省用内置规则")

	sub = p.add_subparsers(dest="cmd", required=True)

	initp = sub.add_parser("init", help="Create an empty storyboard project")
	initp.add_argument("--project_dir", required=True)
	initp.add_argument("--name", default=None, help="项目名，缺省用目录名")

	chatp = sub.add_parser("chat", help="Send one message to the text API")
	chatp.add_argument("--project_dir", required=True)
	chatp.add_argument("message", nargs="*", help="消息内容；与 --file 同时给时拼在文件内容前面")
	chatp.add_argument("--file", default=None, help="读入 .docx/.txt/.md/.json 作为消息内容")
	chatp.add_argument("--yes", action="store_true", help="“重做”时不再询问，直接确认")

	showp = sub.add_parser("show", help="Print current storyboard")
	showp.add_argument("--project_dir", required=True)
	showp.add_argument("--json", action="store_true", help="输出 JSON")

	histp = sub.add_parser("history", help="Print recent conversation turns")
	histp.add_argument("--project_dir", required=True)
	histp.add_argument("--limit", type=int, default=20)

	provp = sub.add_parser("provider", help="Manage API configs")
	psub = provp.add_subparsers(dest="provider_cmd", required=True)

	addp = psub.add_parser("add", help="Add or replace an API config")
	addp.add_argument("--id", default=None, help="缺省自动生成；已存在则替换")
	addp.add_argument("--name", required=True)
	addp.add_argument("--kind", default="text", choices=PROVIDER_KINDS)
	addp.add_argument("--endpoint", required=True, help="e.g. https://api.openai.com/v1")
	addp.add_argument("--credential", required=True)
	addp.add_argument("--model", default=None)
	addp.add_argument("--default", action="store_true")

	psub.add_parser("list", help="List API configs")

	rmp = psub.add_parser("remove", help="Remove an API config")
	rmp.add_argument("--id", required=True)

	defp = psub.add_parser("default", help="Mark an API config as default for its kind")
	defp.add_argument("--id", required=True)

	return p


def _confirm_interactive(text: str) -> bool:
	if not sys.stdin.isatty():
		return False
	answer = input(f"{text} [y/N] ").strip().lower()
	return answer in ("y", "yes")


def _require_project(project_dir: str) -> str:
	# show/history/chat 不应该在任意目录里悄悄建库
	if not project_paths(project_dir).is_project():
		raise ValidationFailure(f"not a storyboard project (run init first): {project_dir}")
	return str(Path(project_dir).resolve())


def cmd_init(project_dir: str, name: Optional[str] = None) -> None:
	from storyboard_chat.storage.sqlite_store import SQLiteProjectStore

	paths = project_paths(project_dir)
	paths.ensure_dirs()

	store = SQLiteProjectStore()
	handle = str(paths.root.resolve())
	store.set_meta(handle, "name", name or paths.root.resolve().name)

	print(f"[OK] project created: {paths.root}")


def cmd_chat(settings: Settings, project_dir: str, message: str, file: Optional[str] = None, yes: bool = False) -> None:
	from storyboard_chat.pipeline.session import open_project_session

	session = open_project_session(_require_project(project_dir), settings)
	try:
		if file:
			doc = session.load_document(file)
			print(f"[OK] read {Path(file).name}: {len(doc)} chars")
			message = f"{message}\n\n{doc}" if message else doc

		confirm = (lambda _text: True) if yes else _confirm_interactive
		result = session.send(message, confirm=confirm)
	finally:
		session.close()

	print(f"[{result.status}] {result.reply}")
	if result.error is not None:
		raise SystemExit(1)


def cmd_show(project_dir: str, as_json: bool = False) -> None:
	from storyboard_chat.storage.sqlite_store import SQLiteProjectStore

	entities = SQLiteProjectStore().load_entities(_require_project(project_dir))

	if as_json:
		print(json.dumps(entities.to_dict(), ensure_ascii=False, indent=2))
		return

	print(f"{len(entities.shots)} 镜头")
	for s in entities.shots:
		dur = f"{s.duration:g}s" if s.duration is not None else "-"
		print(f"{s.sequence_number:3d}. {s.mirror_id:<8} [{s.shot_size or '-'}/{s.shot_type or '-'} {dur}] {s.description or '-'}")

	for label, items in (("角色", entities.characters), ("场景", entities.scenes), ("道具", entities.props)):
		if items:
			print(f"{label}: " + "、".join(a.name for a in items))


def cmd_history(project_dir: str, limit: int) -> None:
	from storyboard_chat.storage.sqlite_store import SQLiteProjectStore

	turns = SQLiteProjectStore().load_transcript(_require_project(project_dir), limit)
	for t in turns:
		print(f"[{t.role}] {t.content}")


def cmd_provider(settings: Settings, args: argparse.Namespace) -> None:
	path = settings.config_path
	cfg = load_global_config(path)

	if args.provider_cmd == "list":
		for p in cfg.providers:
			flag = " (默认)" if p.is_default else ""
			print(f"{p.id}  {p.kind:<5} {p.name}{flag}  {p.endpoint}  model={p.model or '-'}")
		return

	if args.provider_cmd == "add":
		provider = ProviderConfig(
			id=args.id or uuid.uuid4().hex[:12],
			name=args.name,
			kind=args.kind,
			endpoint=args.endpoint,
			credential=args.credential,
			model=args.model,
			is_default=args.default,
		)
		cfg = upsert_provider(cfg, provider)
	elif args.provider_cmd == "remove":
		cfg = remove_provider(cfg, args.id)
	elif args.provider_cmd == "default":
		cfg = set_default_provider(cfg, args.id)

	save_global_config(path, cfg)
	print(f"[OK] saved {path}")


def main(argv=None) -> None:
	args = build_parser().parse_args(argv)

	try:
		settings = load_settings(config_dir=args.config_dir, log_level=args.log_level, intent_rules=args.rules)
		logging.basicConfig(
			level=getattr(logging, settings.log_level, logging.INFO),
			format="%(asctime)s %(levelname)s %(name)s: %(message)s",
		)

		if args.cmd == "init":
			cmd_init(args.project_dir, name=args.name)
			return

		if args.cmd == "chat":
			cmd_chat(settings, args.project_dir, " ".join(args.message).strip(), file=args.file, yes=args.yes)
			return

		if args.cmd == "show":
			cmd_show(args.project_dir, as_json=args.json)
			return

		if args.cmd == "history":
			cmd_history(args.project_dir, args.limit)
			return

		if args.cmd == "provider":
			cmd_provider(settings, args)
			return
	except StoryboardError as e:
		print(f"[ERR] {e}", file=sys.stderr)
		raise SystemExit(1)
