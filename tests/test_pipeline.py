# -*- coding: utf-8 -*-
"""Pipeline 集成测试：ProjectSession 一轮对话的各条路径（假模型，无网络）。"""

from __future__ import annotations

import json
import threading
from pathlib import Path

import httpx
import pytest

from storyboard_chat.core.config import GlobalConfig
from storyboard_chat.core.errors import ProviderFailure, SessionBusy, StorageFailure, ValidationFailure
from storyboard_chat.core.schemas import EntitySets, ShotRecord
from storyboard_chat.pipeline.session import (
	ABORT_TEXT,
	ABORTED,
	APPLIED,
	CANCELLED,
	FAILED,
	PROVIDER_ERROR_PREFIX,
	REGENERATE_CONFIRM_TEXT,
	REPLIED,
	STORAGE_ERROR_PREFIX,
	TurnState,
)
from storyboard_chat.skills.storyboard_chat.schema import Intent

from conftest import FakeLLM, MemoryGateway, text_provider


FENCED = '好的：\n```json\n{"storyboards": [{"mirror_id": "B1", "description": "新开场"}, {"mirror_id": "B2"}]}\n```'


def _existing() -> EntitySets:
	return EntitySets(shots=(ShotRecord(1, "A1", description="旧开场"), ShotRecord(2, "A2")))


class TestRegenerateGate:
	def test_declined_never_calls_provider(self, make_session):
		gw = MemoryGateway(_existing())
		llm = FakeLLM(FENCED)
		asked = []
		session = make_session(llm, gateway=gw)

		r = session.send("重做一版", confirm=lambda text: asked.append(text) or False)

		assert r.status == ABORTED
		assert r.reply == ABORT_TEXT
		assert asked == [REGENERATE_CONFIRM_TEXT]
		assert llm.calls == []
		assert gw.entities == _existing()
		assert gw.commits == []
		assert [(t.role, t.content) for t in gw.turns] == [("user", "重做一版"), ("assistant", ABORT_TEXT)]

	def test_no_callback_means_declined(self, make_session):
		gw = MemoryGateway(_existing())
		llm = FakeLLM(FENCED)
		r = make_session(llm, gateway=gw).send("regenerate all")
		assert r.status == ABORTED
		assert llm.calls == []

	def test_confirmed_replaces(self, make_session):
		gw = MemoryGateway(_existing())
		session = make_session(FakeLLM(FENCED), gateway=gw)

		r = session.send("重做一版", confirm=lambda text: True)

		assert r.status == APPLIED
		assert r.intent is Intent.FULL_REGENERATE
		assert [s.mirror_id for s in r.entities.shots] == ["B1", "B2"]
		assert gw.commits == [True]
		assert r.reply.startswith("已重新生成 2 个分镜")
		# 助手消息存的是模型原文
		assert gw.turns[-1].content == FENCED
		assert session.snapshot() == r.entities
		assert session.state is TurnState.AWAITING_INPUT

	def test_regenerate_on_empty_project_skips_gate(self, make_session):
		gw = MemoryGateway()
		asked = []
		r = make_session(FakeLLM(FENCED), gateway=gw).send("重新生成", confirm=lambda t: asked.append(t) or False)
		assert asked == []
		assert r.status == APPLIED
		assert r.intent is Intent.PARTIAL_UPDATE


class TestTurns:
	def test_plain_reply(self, make_session, gateway):
		r = make_session(FakeLLM("镜头语言指的是……")).send("什么是镜头语言？")
		assert r.status == REPLIED
		assert r.reply == "镜头语言指的是……"
		assert gateway.commits == []
		assert [t.role for t in gateway.turns] == ["user", "assistant"]

	def test_partial_merge(self, make_session):
		gw = MemoryGateway(_existing())
		reply = '```json\n{"storyboards": [{"mirror_id": "A1-1", "sequence_number": 2}]}\n```'
		r = make_session(FakeLLM(reply), gateway=gw).send("在 A1 后面插入一个镜头")
		assert r.status == APPLIED
		assert [s.mirror_id for s in gw.entities.shots] == ["A1", "A1-1", "A2"]
		assert gw.commits == [False]

	def test_history_excludes_current_message(self, make_session, gateway):
		llm = FakeLLM("ok")
		session = make_session(llm, history_limit=2)
		session.send("一")
		session.send("二")
		session.send("三")

		hist = [t.content for t in llm.calls[-1]["history"]]
		assert hist == ["二", "ok"]
		assert "三" in llm.calls[-1]["message"]
		assert [t.content for t in session.transcript()] == ["三", "ok"]
		assert len(session.transcript(10)) == 6

	def test_provider_failure(self, make_session):
		gw = MemoryGateway(_existing())
		r = make_session(FakeLLM(ProviderFailure("API 返回错误 (401): bad key")), gateway=gw).send("加一个镜头")

		assert r.status == FAILED
		assert isinstance(r.error, ProviderFailure)
		assert r.reply == PROVIDER_ERROR_PREFIX + "API 返回错误 (401): bad key"
		assert gw.turns[-1].content == r.reply
		assert gw.entities == _existing()

	def test_storage_failure_keeps_state(self, make_session):
		gw = MemoryGateway(_existing())
		gw.fail_commit = True
		session = make_session(FakeLLM(FENCED), gateway=gw)

		r = session.send("加两个镜头")

		assert r.status == FAILED
		assert r.reply.startswith(STORAGE_ERROR_PREFIX)
		assert r.entities == _existing()
		assert gw.entities == _existing()
		assert session.snapshot() == _existing()

	def test_missing_text_provider(self, make_session):
		llm = FakeLLM("ok")
		gw = MemoryGateway()
		session = make_session(llm, gateway=gw, global_config=GlobalConfig())
		with pytest.raises(ValidationFailure):
			session.send("你好")
		assert llm.calls == []
		assert gw.turns == []

	def test_empty_message(self, make_session):
		with pytest.raises(ValidationFailure):
			make_session(FakeLLM()).send("   ")

	@pytest.mark.parametrize("shot_json", [
		'{"mirror_id": "B1", "sequence_number": "²"}',
		'{"mirror_id": "B1", "duration": ' + "9" * 400 + "}",
		'{"mirror_id": "B1", "duration": ' + "9" * 5000 + "}",
		'{"mirror_id": "B1", "duration": Infinity}',
	])
	def test_garbage_reply_still_finishes_turn(self, make_session, gateway, shot_json):
		reply = '```json\n{"storyboards": [' + shot_json + "]}\n```"
		r = make_session(FakeLLM(reply)).send("拆成分镜")

		assert r.status in (APPLIED, REPLIED)
		assert [t.role for t in gateway.turns] == ["user", "assistant"]
		for s in gateway.entities.shots:
			assert s.duration is None

	def test_error_turn_unwritable(self, make_session):
		gw = MemoryGateway(_existing())

		def disk_fills_up():
			gw.fail_commit = True
			gw.fail_append = True
			return FENCED

		r = make_session(FakeLLM(disk_fills_up), gateway=gw).send("加两个镜头")

		assert r.status == FAILED
		assert isinstance(r.error, StorageFailure)
		assert r.entities == _existing()
		assert [t.role for t in gw.turns] == ["user"]

	def test_plain_reply_unwritable(self, make_session):
		gw = MemoryGateway()

		def disk_fills_up():
			gw.fail_append = True
			return "普通回答"

		r = make_session(FakeLLM(disk_fills_up), gateway=gw).send("你好")
		assert r.status == FAILED
		assert r.reply.startswith(STORAGE_ERROR_PREFIX)

	def test_user_turn_unwritable(self, make_session):
		gw = MemoryGateway()
		gw.fail_append = True
		llm = FakeLLM("ok")

		r = make_session(llm, gateway=gw).send("你好")
		assert r.status == FAILED
		assert r.intent is None
		assert llm.calls == []


class TestConcurrency:
	def test_busy(self, make_session):
		entered = threading.Event()
		release = threading.Event()

		def slow():
			entered.set()
			release.wait(5)
			return "ok"

		session = make_session(FakeLLM(slow))
		results = []
		t = threading.Thread(target=lambda: results.append(session.send("第一条")))
		t.start()
		assert entered.wait(5)

		assert session.busy
		with pytest.raises(SessionBusy):
			session.send("第二条")

		release.set()
		t.join(5)
		assert results[0].status == REPLIED
		assert not session.busy

	def test_close_during_call_discards(self, make_session):
		gw = MemoryGateway(_existing())
		holder = {}

		def close_midway():
			holder["session"].close()
			return FENCED

		session = make_session(FakeLLM(close_midway), gateway=gw)
		holder["session"] = session

		r = session.send("加两个镜头")

		assert r.status == CANCELLED
		assert gw.commits == []
		assert gw.entities == _existing()
		assert [t.role for t in gw.turns] == ["user"]
		with pytest.raises(ValidationFailure):
			session.send("还在吗")

	def test_close_while_reconciling_discards(self, make_session):
		gw = MemoryGateway(_existing())
		session = make_session(FakeLLM(FENCED), gateway=gw)
		reconcile = session.skill.reconcile

		def close_then_reconcile(*args):
			session.close()
			return reconcile(*args)

		session.skill.reconcile = close_then_reconcile
		r = session.send("加两个镜头")

		assert r.status == CANCELLED
		assert gw.commits == []
		assert gw.entities == _existing()

	def test_close_calls_hook_once(self, make_session):
		calls = []
		session = make_session(FakeLLM(), on_close=lambda: calls.append(1))
		session.close()
		session.close()
		assert calls == [1]


class TestEndToEnd:
	def test_sqlite_session(self, tmp_path: Path):
		from storyboard_chat.core.config import Settings, save_global_config
		from storyboard_chat.pipeline.session import open_project_session
		from storyboard_chat.storage.sqlite_store import SQLiteProjectStore

		settings = Settings(config_dir=tmp_path / "cfg")
		save_global_config(settings.config_path, GlobalConfig(providers=[text_provider(is_default=True)]))

		project = tmp_path / "proj"
		session = open_project_session(project, settings, llm_client=FakeLLM(FENCED))
		try:
			r = session.send("把剧本拆成分镜")
		finally:
			session.close()

		assert r.status == APPLIED
		loaded = SQLiteProjectStore().load_entities(str(project.resolve()))
		assert [s.mirror_id for s in loaded.shots] == ["B1", "B2"]
		turns = SQLiteProjectStore().load_transcript(str(project.resolve()), 10)
		assert [t.role for t in turns] == ["user", "assistant"]

	def test_rule_file_from_settings(self, tmp_path: Path):
		from storyboard_chat.core.config import Settings, save_global_config
		from storyboard_chat.pipeline.session import open_project_session

		rules = tmp_path / "rules.json"
		rules.write_text(json.dumps([{"pattern": "推倒重来", "intent": "full_regenerate"}], ensure_ascii=False), encoding="utf-8")
		settings = Settings(config_dir=tmp_path / "cfg", intent_rules_path=rules)
		save_global_config(settings.config_path, GlobalConfig(providers=[text_provider(is_default=True)]))

		session = open_project_session(tmp_path / "proj", settings, llm_client=FakeLLM())
		try:
			assert session.classifier.match("推倒重来") is Intent.FULL_REGENERATE
			assert session.classifier.match("重做") is Intent.PLAIN
		finally:
			session.close()

	def test_load_document(self, tmp_path: Path, make_session):
		p = tmp_path / "script.md"
		p.write_text("# 第一场\n清晨。", encoding="utf-8")
		assert make_session(FakeLLM()).load_document(p) == "# 第一场\n清晨。"


class TestCli:
	def test_init_provider_chat_show(self, tmp_path: Path, capsys, monkeypatch):
		from storyboard_chat import cli
		from storyboard_chat.providers.llm import chat_client

		cfg_dir = str(tmp_path / "cfg")
		project = str(tmp_path / "proj")

		def handler(request):
			return httpx.Response(200, json={"choices": [{"message": {"content": FENCED}}]})

		real_loader = chat_client.load_chat_client
		monkeypatch.setattr(
			chat_client, "load_chat_client",
			lambda settings, transport=None: real_loader(settings, transport=httpx.MockTransport(handler)),
		)

		cli.main(["--config_dir", cfg_dir, "init", "--project_dir", project, "--name", "demo"])
		cli.main([
			"--config_dir", cfg_dir, "provider", "add", "--id", "t1", "--name", "mock",
			"--endpoint", "https://llm.test/v1", "--credential", "sk-test", "--default",
		])
		cli.main(["--config_dir", cfg_dir, "chat", "--project_dir", project, "拆成分镜"])
		capsys.readouterr()

		cli.main(["--config_dir", cfg_dir, "show", "--project_dir", project, "--json"])
		data = json.loads(capsys.readouterr().out)
		assert [s["mirror_id"] for s in data["storyboards"]] == ["B1", "B2"]

		cli.main(["--config_dir", cfg_dir, "provider", "list"])
		assert "t1" in capsys.readouterr().out

	def test_show_requires_project(self, tmp_path: Path, capsys):
		from storyboard_chat import cli

		with pytest.raises(SystemExit):
			cli.main(["--config_dir", str(tmp_path / "cfg"), "show", "--project_dir", str(tmp_path / "nothing")])
		assert "[ERR]" in capsys.readouterr().err
		assert not (tmp_path / "nothing" / ".storyboard").exists()
