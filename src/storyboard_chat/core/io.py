# -*- coding: utf-8 -*-
"""
storyboard_chat/core/io.py

目的：
- 统一管理项目目录的路径约定（哪些文件放哪里）。
- 统一创建项目目录骨架（ensure_dirs）。

为什么要做这层：
- 避免存储层、CLI 到处手写路径字符串。
- 一旦项目目录结构要调整，只改这里。

项目目录约定：
- <project>/.storyboard/project.db   : SQLite，分镜/角色/场景/道具/对话记录
- <config_dir>/config.json           : 全局配置（API 列表），config_dir 缺省为 ~/.storyboard
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


META_DIR_NAME = ".storyboard"


@dataclass(frozen=True)
class ProjectPaths:
	"""
	注意：
	- 只存路径，不做读写。
	- ensure_dirs() 负责创建目录骨架。
	"""
	root: Path
	meta_dir: Path
	database: Path

	def ensure_dirs(self) -> None:
		# 重复执行必须安全
		self.meta_dir.mkdir(parents=True, exist_ok=True)

	def is_project(self) -> bool:
		return self.database.exists()


def project_paths(project_dir: str | Path) -> ProjectPaths:
	root = Path(project_dir)
	meta = root / META_DIR_NAME

	return ProjectPaths(
		root=root,
		meta_dir=meta,
		database=meta / "project.db",
	)


def global_config_path(config_dir: str | Path) -> Path:
	return Path(config_dir) / "config.json"
