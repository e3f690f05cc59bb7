"""图片下载相关的辅助函数

实体上的 image_url 可能是 data URI（base64），也可能是服务商返回的远程 URL。
"""
from __future__ import annotations

import base64
import binascii
import re
from dataclasses import dataclass

from app.models.entities import Character, Scene

_DATA_URI_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?P<params>(;[^,;]+)*?);base64,(?P<data>.*)$", re.DOTALL)
_UNSAFE_FILENAME_RE = re.compile(r'[\\/:*?"<>|\r\n\t]+')

MIME_EXTENSIONS = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/webp": "webp",
    "image/gif": "gif",
}


@dataclass(frozen=True, slots=True)
class DecodedImage:
    content: bytes
    media_type: str

    @property
    def extension(self) -> str:
        return MIME_EXTENSIONS.get(self.media_type, "png")


def is_data_uri(url: str) -> bool:
    return url.startswith("data:")


def decode_data_uri(url: str) -> DecodedImage:
    match = _DATA_URI_RE.match(url)
    if not match:
        raise ValueError("不是 base64 编码的 data URI")
    try:
        content = base64.b64decode(match.group("data"), validate=False)
    except (binascii.Error, ValueError) as exc:
        raise ValueError(f"图片数据无法解码: {exc}") from exc
    return DecodedImage(content=content, media_type=match.group("mime") or "image/png")


def safe_filename(name: str) -> str:
    cleaned = _UNSAFE_FILENAME_RE.sub("_", name).strip(" .")
    return cleaned or "image"


def scene_image_filename(scene: Scene, extension: str = "png") -> str:
    prefix = "0.climax_" if scene.is_climax else f"{scene.chapter_number}."
    return safe_filename(f"{prefix}{scene.title}") + f".{extension}"


def character_image_filename(character: Character, extension: str = "png") -> str:
    return safe_filename(f"{character.name or character.id}_profile") + f".{extension}"
