# -*- coding: utf-8 -*-
"""
storyboard_chat/core/errors.py

异常分层：
- ExtractionMismatch：AI 回复里没抽到结构化数据（非致命，只记日志，按普通聊天处理）
- ProviderFailure   ：网络/鉴权/限流等模型调用失败（以错误消息展示给用户）
- StorageFailure    ：数据库/文件读写失败（不留半截写入）
- ValidationFailure ：发送前的校验失败（缺少 text 类型 API、空消息等），不发任何网络请求
- UnsupportedFormat ：上传文档格式不支持（例如旧版 .doc）

约定：
- 适配层（sqlite/httpx/文件）负责把第三方异常翻译成这里的类型，并 `raise ... from e`。
- 所有类型都不会被自动重试。
"""

from __future__ import annotations


class StoryboardError(Exception):
	"""本包所有业务异常的基类。"""


class ExtractionMismatch(StoryboardError):
	pass


class ProviderFailure(StoryboardError):
	pass


class StorageFailure(StoryboardError):
	pass


class ValidationFailure(StoryboardError):
	pass


class SessionBusy(ValidationFailure):
	"""同一项目已有一次请求在进行中。"""


class UnsupportedFormat(StoryboardError):
	pass
