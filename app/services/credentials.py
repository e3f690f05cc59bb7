"""API 凭证解析

优先级：用户手动输入（保存在本地凭证文件） > 平台提供（Settings.api_key / 环境变量） > 未设置。
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from app.config import Settings

logger = logging.getLogger(__name__)

CredentialSource = Literal["user", "platform"]


@dataclass(frozen=True, slots=True)
class ResolvedCredential:
    value: str
    source: CredentialSource

    def masked(self) -> str:
        if len(self.value) <= 8:
            return "***"
        return f"{self.value[:4]}***{self.value[-4:]}"


class CredentialStore:
    """用户输入凭证的本地持久化（JSON 文件）"""

    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> str | None:
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable credentials file %s: %s", self.path, exc)
            return None
        value = data.get("api_key") if isinstance(data, dict) else None
        if isinstance(value, str) and value.strip():
            return value.strip()
        return None

    def save(self, value: str) -> None:
        value = value.strip()
        if not value:
            raise ValueError("API key must not be empty")
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps({"api_key": value}), encoding="utf-8")
        try:
            self.path.chmod(0o600)
        except OSError:
            logger.debug("Could not restrict permissions on %s", self.path)

    def clear(self) -> bool:
        if not self.path.exists():
            return False
        self.path.unlink()
        return True


def resolve_credential(store: CredentialStore, settings: Settings) -> ResolvedCredential | None:
    user_value = store.load()
    if user_value:
        return ResolvedCredential(value=user_value, source="user")
    platform_value = (settings.api_key or "").strip()
    if platform_value:
        return ResolvedCredential(value=platform_value, source="platform")
    return None


class CredentialResolver:
    def __init__(self, settings: Settings, store: CredentialStore | None = None):
        self.settings = settings
        self.store = store or CredentialStore(settings.credentials_path)

    def resolve(self) -> ResolvedCredential | None:
        return resolve_credential(self.store, self.settings)
