# -*- coding: utf-8 -*-
"""Scripts 集成测试。"""

from __future__ import annotations

import subprocess
import sys
from pathlib import Path


ROOT = Path(__file__).resolve().parent.parent


def _run(*argv):
	return subprocess.run(
		[sys.executable, "scripts/debug_extract.py", *argv],
		cwd=ROOT,
		capture_output=True,
		text=True,
		encoding="utf-8",
	)


def test_debug_extract_structured(tmp_path: Path):
	"""结构化回复：打印抽取数量和 reconcile 后的分镜预览。"""
	reply = tmp_path / "reply.txt"
	reply.write_text(
		'分镜如下：\n```json\n{"storyboards": [{"mirror_id": "A1", "description": "码头清晨"}], '
		'"characters": [{"name": "老王"}]}\n```',
		encoding="utf-8",
	)

	result = _run("--in_path", str(reply))
	assert result.returncode == 0, result.stderr
	assert "[extract] storyboards=1 characters=1" in result.stdout
	assert "[A1] 码头清晨" in result.stdout


def test_debug_extract_plain(tmp_path: Path):
	reply = tmp_path / "reply.txt"
	reply.write_text("只是普通聊天。", encoding="utf-8")

	result = _run("--in_path", str(reply))
	assert result.returncode == 0, result.stderr
	assert "plain chat" in result.stdout
