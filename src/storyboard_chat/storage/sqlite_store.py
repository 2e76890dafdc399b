# -*- coding: utf-8 -*-
"""
storage/sqlite_store.py

这个文件做什么：
- PersistenceGateway 的 SQLite 实现：每个项目一个库 <project>/.storyboard/project.db。
- 表结构：storyboards（mirror_id 主键）、characters/scenes/props（name 主键）、
  chat_history（自增 id）、project_meta（key/value）。

实现原则：
- 每次调用开一个连接、用完即关；句柄就是项目目录，不在内存里缓存任何数据。
- commit：一个事务里先清空四张表再整表写入（reconciler 给的就是完整的下一版），
  可选地同一事务里追加一条助手消息。任何 sqlite 错误都回滚并抛 StorageFailure。
- None 存成 NULL，读回来还是 None。
"""

from __future__ import annotations

import logging
import sqlite3
import time
from contextlib import closing
from typing import Iterable, List, Optional, Sequence

from storyboard_chat.core.errors import StorageFailure
from storyboard_chat.core.io import project_paths
from storyboard_chat.core.schemas import (
	AssetEntity,
	CharacterEntity,
	ConversationTurn,
	EntitySets,
	PropEntity,
	SceneEntity,
	ShotRecord,
)
from storyboard_chat.core.schemas.assets import ASSET_CONTENT_FIELDS
from storyboard_chat.core.schemas.shot import SHOT_CONTENT_FIELDS


logger = logging.getLogger(__name__)

SHOT_COLUMNS = ("mirror_id", "sequence_number") + SHOT_CONTENT_FIELDS
ASSET_COLUMNS = ("name",) + ASSET_CONTENT_FIELDS
ASSET_TABLES = (
	("characters", CharacterEntity),
	("scenes", SceneEntity),
	("props", PropEntity),
)

SCHEMA = [
	"""CREATE TABLE IF NOT EXISTS storyboards (
		mirror_id TEXT PRIMARY KEY,
		sequence_number INTEGER NOT NULL,
		shot_type TEXT,
		shot_size TEXT,
		duration REAL,
		dialogue TEXT,
		description TEXT,
		notes TEXT,
		image_prompt_zh TEXT,
		image_prompt_en TEXT,
		image_prompt_tail_zh TEXT,
		image_prompt_tail_en TEXT,
		video_prompt_zh TEXT,
		video_prompt_en TEXT
	)""",
	*[
		f"""CREATE TABLE IF NOT EXISTS {table} (
			name TEXT PRIMARY KEY,
			description TEXT,
			image_prompt_zh TEXT,
			image_prompt_en TEXT,
			notes TEXT
		)"""
		for table, _ in ASSET_TABLES
	],
	"""CREATE TABLE IF NOT EXISTS project_meta (
		key TEXT PRIMARY KEY,
		value TEXT
	)""",
	"""CREATE TABLE IF NOT EXISTS chat_history (
		id INTEGER PRIMARY KEY AUTOINCREMENT,
		role TEXT NOT NULL,
		content TEXT NOT NULL,
		timestamp INTEGER NOT NULL
	)""",
]


def _placeholders(columns: Sequence[str]) -> str:
	return ", ".join("?" for _ in columns)


class SQLiteProjectStore:
	def _connect(self, handle: str) -> sqlite3.Connection:
		paths = project_paths(handle)
		try:
			paths.ensure_dirs()
			conn = sqlite3.connect(str(paths.database))
		except (OSError, sqlite3.Error) as e:
			raise StorageFailure(f"打开数据库失败: {e}") from e

		conn.row_factory = sqlite3.Row
		try:
			with conn:
				for stmt in SCHEMA:
					conn.execute(stmt)
		except sqlite3.Error as e:
			conn.close()
			raise StorageFailure(f"初始化数据库失败: {e}") from e

		return conn

	# ---------- 读 ----------

	def load_entities(self, handle: str) -> EntitySets:
		with closing(self._connect(handle)) as conn:
			try:
				rows = conn.execute(
					f"SELECT {', '.join(SHOT_COLUMNS)} FROM storyboards ORDER BY sequence_number"
				).fetchall()
				shots = tuple(ShotRecord(**dict(r)) for r in rows)

				assets = {}
				for table, cls in ASSET_TABLES:
					rows = conn.execute(f"SELECT {', '.join(ASSET_COLUMNS)} FROM {table} ORDER BY rowid").fetchall()
					assets[table] = tuple(cls(**dict(r)) for r in rows)
			except sqlite3.Error as e:
				raise StorageFailure(f"查询分镜失败: {e}") from e

		return EntitySets(shots=shots, **assets)

	def load_transcript(self, handle: str, limit: int) -> List[ConversationTurn]:
		if limit <= 0:
			return []

		with closing(self._connect(handle)) as conn:
			try:
				rows = conn.execute(
					"SELECT id, role, content, timestamp FROM chat_history ORDER BY id DESC LIMIT ?",
					(limit,),
				).fetchall()
			except sqlite3.Error as e:
				raise StorageFailure(f"查询聊天历史失败: {e}") from e

		# 最新的在最后
		return [
			ConversationTurn(role=r["role"], content=r["content"], turn_id=r["id"], timestamp=r["timestamp"])
			for r in reversed(rows)
		]

	def get_meta(self, handle: str, key: str) -> Optional[str]:
		with closing(self._connect(handle)) as conn:
			try:
				row = conn.execute("SELECT value FROM project_meta WHERE key = ?", (key,)).fetchone()
			except sqlite3.Error as e:
				raise StorageFailure(f"读取项目信息失败: {e}") from e

		return row["value"] if row else None

	# ---------- 写 ----------

	def set_meta(self, handle: str, key: str, value: str) -> None:
		with closing(self._connect(handle)) as conn:
			try:
				with conn:
					conn.execute("INSERT OR REPLACE INTO project_meta (key, value) VALUES (?, ?)", (key, value))
			except sqlite3.Error as e:
				raise StorageFailure(f"保存项目信息失败: {e}") from e

	def append_turn(self, handle: str, role: str, content: str) -> ConversationTurn:
		turn = ConversationTurn(role=role, content=content)
		with closing(self._connect(handle)) as conn:
			try:
				with conn:
					return self._write_turn(conn, turn)
			except sqlite3.Error as e:
				raise StorageFailure(f"保存聊天消息失败: {e}") from e

	def commit(
		self,
		handle: str,
		entities: EntitySets,
		is_full_regenerate: bool,
		turn: Optional[ConversationTurn] = None,
	) -> None:
		logger.info(
			"commit %s: shots=%d characters=%d scenes=%d props=%d full=%s",
			handle, len(entities.shots), len(entities.characters),
			len(entities.scenes), len(entities.props), is_full_regenerate,
		)

		with closing(self._connect(handle)) as conn:
			try:
				# with conn：正常结束自动 COMMIT，抛异常自动 ROLLBACK
				with conn:
					self._write_shots(conn, entities.shots)
					for table, _ in ASSET_TABLES:
						self._write_assets(conn, table, getattr(entities, table))
					conn.execute(
						"INSERT OR REPLACE INTO project_meta (key, value) VALUES ('last_commit', ?)",
						("full_regenerate" if is_full_regenerate else "partial_update",),
					)
					if turn is not None:
						self._write_turn(conn, turn)
			except sqlite3.Error as e:
				raise StorageFailure(f"保存分镜失败: {e}") from e

	def _write_shots(self, conn: sqlite3.Connection, shots: Iterable[ShotRecord]) -> None:
		conn.execute("DELETE FROM storyboards")
		conn.executemany(
			f"INSERT INTO storyboards ({', '.join(SHOT_COLUMNS)}) VALUES ({_placeholders(SHOT_COLUMNS)})",
			[tuple(getattr(s, c) for c in SHOT_COLUMNS) for s in shots],
		)

	def _write_assets(self, conn: sqlite3.Connection, table: str, assets: Iterable[AssetEntity]) -> None:
		conn.execute(f"DELETE FROM {table}")
		conn.executemany(
			f"INSERT INTO {table} ({', '.join(ASSET_COLUMNS)}) VALUES ({_placeholders(ASSET_COLUMNS)})",
			[tuple(getattr(a, c) for c in ASSET_COLUMNS) for a in assets],
		)

	def _write_turn(self, conn: sqlite3.Connection, turn: ConversationTurn) -> ConversationTurn:
		ts = turn.timestamp if turn.timestamp is not None else int(time.time())
		cur = conn.execute(
			"INSERT INTO chat_history (role, content, timestamp) VALUES (?, ?, ?)",
			(turn.role, turn.content, ts),
		)
		return ConversationTurn(role=turn.role, content=turn.content, turn_id=cur.lastrowid, timestamp=ts)
