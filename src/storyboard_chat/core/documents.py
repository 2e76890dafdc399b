# -*- coding: utf-8 -*-
"""
storyboard_chat/core/documents.py

目的：
- 把用户上传的剧本文件转成纯文本，供聊天框发送。
- 支持 .docx / .txt / .md / .json；旧版 .doc 明确拒绝（提示另存为 .docx）。

docx 的做法：
- docx 就是一个 zip，正文在 word/document.xml。
- 按 <w:p> 段落收集 <w:t> 文本，段落之间换行。
"""

from __future__ import annotations

import html
import logging
import zipfile
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import List

from .errors import StorageFailure, UnsupportedFormat


logger = logging.getLogger(__name__)

TEXT_SUFFIXES = (".txt", ".md", ".json")
SUPPORTED_SUFFIXES = (".docx",) + TEXT_SUFFIXES


def _docx_xml_text(xml_bytes: bytes) -> str:
	root = ET.fromstring(xml_bytes)

	paragraphs: List[str] = []
	for p in root.iter():
		if not str(p.tag).endswith("}p"):
			continue
		parts = [t.text for t in p.iter() if str(t.tag).endswith("}t") and t.text]
		line = "".join(parts).strip()
		if line:
			paragraphs.append(line)

	return html.unescape("\n".join(paragraphs).strip())


def _extract_docx_text(path: Path) -> str:
	try:
		with zipfile.ZipFile(path, "r") as zf:
			xml_bytes = zf.read("word/document.xml")
	except (zipfile.BadZipFile, KeyError) as e:
		raise UnsupportedFormat(f"解析 Word 文档失败，请确保文件格式正确: {e}") from e

	try:
		return _docx_xml_text(xml_bytes)
	except ET.ParseError as e:
		raise UnsupportedFormat(f"解析 Word 文档失败，请确保文件格式正确: {e}") from e


def extract_document_text(path: str | Path) -> str:
	p = Path(path)
	suffix = p.suffix.lower()

	if suffix == ".doc":
		raise UnsupportedFormat("不支持旧版 .doc 格式，请将文件另存为 .docx 格式后再试。")

	if suffix not in SUPPORTED_SUFFIXES:
		raise UnsupportedFormat(f"不支持的文件格式: {suffix or p.name}")

	try:
		if suffix == ".docx":
			text = _extract_docx_text(p)
		else:
			# utf-8-sig：顺手去掉 Windows 记事本的 BOM
			text = p.read_text(encoding="utf-8-sig")
	except OSError as e:
		raise StorageFailure(f"读取文件失败，请重试: {e}") from e
	except UnicodeDecodeError as e:
		raise UnsupportedFormat(f"文件不是 UTF-8 编码: {e}") from e

	logger.info("document %s: %d chars extracted", p.name, len(text))
	return text
