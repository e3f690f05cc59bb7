"""实体仓库：角色 / 场景的唯一持有者

所有按 id 的修改只作用于目标实体，id 不存在时静默跳过（返回 False），
不会抛异常，也不会影响其他实体。

状态策略：进入 loading 时同时清空上一次的错误和图片，
因此任何时刻 {image_url, is_loading, error} 至多只有一个成立；
重新生成失败后实体只保留错误信息，不保留旧图片。角色与场景使用同一策略。
"""
from __future__ import annotations

from collections.abc import Iterable, Iterator
from typing import Generic, TypeVar

from app.models.entities import Character, Headline, ImageEntity, Scene

EntityT = TypeVar("EntityT", bound=ImageEntity)


class EntityCollection(Generic[EntityT]):
    def __init__(self) -> None:
        # dict 保持插入顺序，即分析结果中的顺序
        self._items: dict[str, EntityT] = {}

    def __iter__(self) -> Iterator[EntityT]:
        return iter(list(self._items.values()))

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, entity_id: object) -> bool:
        return entity_id in self._items

    def get(self, entity_id: str) -> EntityT | None:
        return self._items.get(entity_id)

    def list(self) -> list[EntityT]:
        return list(self._items.values())

    def ids(self) -> list[str]:
        return list(self._items.keys())

    def replace_all(self, entities: Iterable[EntityT]) -> None:
        items: dict[str, EntityT] = {}
        for entity in entities:
            if entity.id in items:
                raise ValueError(f"Duplicate entity id: {entity.id}")
            items[entity.id] = entity
        self._items = items

    def set_loading(self, entity_id: str) -> bool:
        return self._update(entity_id, is_loading=True, error=None, image_url=None)

    def set_result(self, entity_id: str, image: str) -> bool:
        return self._update(entity_id, is_loading=False, error=None, image_url=image)

    def set_error(self, entity_id: str, message: str) -> bool:
        return self._update(entity_id, is_loading=False, error=message, image_url=None)

    def is_any_loading(self) -> bool:
        return any(e.is_loading for e in self._items.values())

    def _update(self, entity_id: str, **fields: object) -> bool:
        current = self._items.get(entity_id)
        if current is None:
            return False
        # 替换为新对象，外部持有的旧快照不受影响
        self._items[entity_id] = current.model_copy(update=fields)
        return True


class EntityStore:
    """角色、场景、标题和风格指南的集合"""

    def __init__(self) -> None:
        self.characters: EntityCollection[Character] = EntityCollection()
        self.scenes: EntityCollection[Scene] = EntityCollection()
        self.headline: Headline | None = None
        self.style_guide: str = ""

    def replace_all(
        self,
        *,
        characters: Iterable[Character],
        scenes: Iterable[Scene],
        headline: Headline | None,
        style_guide: str,
    ) -> None:
        self.characters.replace_all(characters)
        self.scenes.replace_all(scenes)
        self.headline = headline
        self.style_guide = style_guide

    def clear(self) -> None:
        self.replace_all(characters=[], scenes=[], headline=None, style_guide="")

    def is_any_loading(self) -> bool:
        return self.characters.is_any_loading() or self.scenes.is_any_loading()

    def climax(self) -> Scene | None:
        for scene in self.scenes:
            if scene.is_climax:
                return scene
        return None
