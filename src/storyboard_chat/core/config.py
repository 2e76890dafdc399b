# -*- coding: utf-8 -*-
"""
storyboard_chat/core/config.py

目的：
- Settings：运行参数（配置目录、历史条数、超时、日志级别）。
- ProviderConfig / GlobalConfig：用户配置的 API 列表，对应 <config_dir>/config.json。
- 维护“每种类型（text/image/video）最多一个默认 API”的约束：写入时保证。

配置来源优先级（从高到低）：
1) 显式传参
2) 项目根目录的 .env（python-dotenv，不覆盖已有环境变量）
3) 系统环境变量
4) 内置默认值

安全约定：
- API key 只存在 config.json / .env 里，不写进任何代码文件，也不打日志。
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

from .errors import StorageFailure, ValidationFailure
from .io import global_config_path


logger = logging.getLogger(__name__)

PROVIDER_KINDS = ("text", "image", "video")


@dataclass
class Settings:
	config_dir: Path
	history_limit: int = 10
	request_timeout_s: float = 120.0
	log_level: str = "INFO"
	# 意图规则文件（JSON），缺省用内置规则表
	intent_rules_path: Optional[Path] = None

	@property
	def config_path(self) -> Path:
		return global_config_path(self.config_dir)


def _load_dotenv_if_present(project_root: Path) -> None:
	env_path = project_root / ".env"
	if env_path.exists():
		load_dotenv(dotenv_path=str(env_path), override=False)


def load_settings(
	project_root: Optional[str] = None,
	config_dir: Optional[str] = None,
	history_limit: Optional[int] = None,
	request_timeout_s: Optional[float] = None,
	log_level: Optional[str] = None,
	intent_rules: Optional[str] = None,
) -> Settings:
	root = Path(project_root or os.getcwd()).resolve()
	_load_dotenv_if_present(root)

	cdir = (config_dir or os.environ.get("STORYBOARD_CONFIG_DIR", "")).strip()
	cdir_path = Path(cdir).expanduser() if cdir else Path.home() / ".storyboard"

	try:
		limit = history_limit
		if limit is None:
			limit = int(os.environ.get("STORYBOARD_HISTORY_LIMIT", "").strip() or 10)
		timeout = request_timeout_s
		if timeout is None:
			timeout = float(os.environ.get("STORYBOARD_TIMEOUT_S", "").strip() or 120)
	except ValueError as e:
		raise ValidationFailure(f"invalid numeric setting: {e}") from e

	if limit < 0:
		raise ValidationFailure("STORYBOARD_HISTORY_LIMIT must be >= 0")

	level = (log_level or os.environ.get("STORYBOARD_LOG_LEVEL", "")).strip().upper() or "INFO"

	rules = (intent_rules or os.environ.get("STORYBOARD_INTENT_RULES", "")).strip()

	return Settings(
		config_dir=cdir_path,
		history_limit=limit,
		request_timeout_s=timeout,
		log_level=level,
		intent_rules_path=Path(rules).expanduser() if rules else None,
	)


@dataclass
class ProviderConfig:
	id: str
	name: str
	kind: str
	endpoint: str
	credential: str
	model: Optional[str] = None
	is_default: bool = False

	def __post_init__(self) -> None:
		if self.kind not in PROVIDER_KINDS:
			raise ValidationFailure(f"invalid provider kind: {self.kind}")

	@classmethod
	def from_dict(cls, data: Dict[str, Any]) -> "ProviderConfig":
		# 兼容旧配置文件的字段名：api_type/base_url/api_key
		return cls(
			id=str(data.get("id", "")),
			name=str(data.get("name", "")),
			kind=str(data.get("kind") or data.get("api_type") or "text"),
			endpoint=str(data.get("endpoint") or data.get("base_url") or ""),
			credential=str(data.get("credential") or data.get("api_key") or ""),
			model=data.get("model") or None,
			is_default=bool(data.get("is_default", False)),
		)

	def to_dict(self) -> Dict[str, Any]:
		return asdict(self)


@dataclass
class GlobalConfig:
	providers: List[ProviderConfig] = field(default_factory=list)
	base_folder: Optional[str] = None
	last_project: Optional[str] = None

	def find(self, provider_id: str) -> Optional[ProviderConfig]:
		for p in self.providers:
			if p.id == provider_id:
				return p
		return None


def enforce_single_default(cfg: GlobalConfig) -> GlobalConfig:
	"""
	每种 kind 最多保留一个 is_default（保留最先出现的那个）。
	只影响同一 kind，不会去动其它 kind 的默认项。
	"""
	seen = set()
	providers = []
	for p in cfg.providers:
		if p.is_default and p.kind in seen:
			logger.warning("provider %s: duplicate default for kind=%s, cleared", p.id, p.kind)
			p = replace(p, is_default=False)
		elif p.is_default:
			seen.add(p.kind)
		providers.append(p)

	return replace(cfg, providers=providers)


def set_default_provider(cfg: GlobalConfig, provider_id: str) -> GlobalConfig:
	target = cfg.find(provider_id)
	if target is None:
		raise ValidationFailure(f"provider not found: {provider_id}")

	providers = []
	for p in cfg.providers:
		if p.kind == target.kind:
			p = replace(p, is_default=(p.id == provider_id))
		providers.append(p)

	return replace(cfg, providers=providers)


def upsert_provider(cfg: GlobalConfig, provider: ProviderConfig) -> GlobalConfig:
	"""
	新增或按 id 替换一个 provider；provider.is_default=True 时同时清掉同 kind 的其它默认项。
	"""
	if not provider.name.strip() or not provider.endpoint.strip() or not provider.credential.strip():
		raise ValidationFailure("provider name/endpoint/credential are required")

	providers = list(cfg.providers)
	for i, p in enumerate(providers):
		if p.id == provider.id:
			providers[i] = provider
			break
	else:
		providers.append(provider)

	out = replace(cfg, providers=providers)
	if provider.is_default:
		out = set_default_provider(out, provider.id)
	return out


def remove_provider(cfg: GlobalConfig, provider_id: str) -> GlobalConfig:
	if cfg.find(provider_id) is None:
		raise ValidationFailure(f"provider not found: {provider_id}")
	return replace(cfg, providers=[p for p in cfg.providers if p.id != provider_id])


def resolve_provider(cfg: GlobalConfig, kind: str = "text") -> ProviderConfig:
	"""
	选出某类 API：优先默认项，其次同类第一个；都没有则校验失败（不会发出请求）。
	"""
	candidates = [p for p in cfg.providers if p.kind == kind]
	if not candidates:
		raise ValidationFailure(f"请先配置一个 {kind} 类型的 API")

	for p in candidates:
		if p.is_default:
			return p
	return candidates[0]


def load_global_config(path: Path) -> GlobalConfig:
	"""
	原则：
	- 文件不存在：返回空配置（首次启动）。
	- 文件存在但坏了：StorageFailure，不要悄悄当成空配置覆盖掉用户数据。
	"""
	if not path.exists():
		return GlobalConfig()

	try:
		data = json.loads(path.read_text(encoding="utf-8"))
	except (OSError, json.JSONDecodeError) as e:
		raise StorageFailure(f"读取配置文件失败: {e}") from e

	if not isinstance(data, dict):
		raise StorageFailure("读取配置文件失败: top level must be an object")

	providers = [ProviderConfig.from_dict(d) for d in data.get("apis", []) if isinstance(d, dict)]

	return GlobalConfig(
		providers=providers,
		base_folder=data.get("base_folder"),
		last_project=data.get("last_project"),
	)


def save_global_config(path: Path, cfg: GlobalConfig) -> GlobalConfig:
	"""
	落盘前先保证默认项约束；写临时文件再替换，避免写一半留下坏文件。
	返回实际写入的配置。
	"""
	cfg = enforce_single_default(cfg)

	data = {
		"apis": [p.to_dict() for p in cfg.providers],
		"base_folder": cfg.base_folder,
		"last_project": cfg.last_project,
	}

	tmp = path.with_suffix(path.suffix + ".tmp")
	try:
		path.parent.mkdir(parents=True, exist_ok=True)
		tmp.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
		os.replace(tmp, path)
	except OSError as e:
		raise StorageFailure(f"写入配置文件失败: {e}") from e

	return cfg
