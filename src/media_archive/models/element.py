# Файл: media_archive/models/element.py

from __future__ import annotations

from typing import Annotated, Any, Iterable, List, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

# Типы элементов сообщения, которые считаются "картинкоподобными"
IMAGE_ELEMENT_TYPES = ("img", "image")
STICKER_ELEMENT_TYPES = ("mface",)


class _Element(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: Optional[str] = None

    @property
    def source_url(self) -> Optional[str]:
        return self.url or None


class StaticImage(_Element):
    kind: Literal["static"] = "static"


class AnimatedImage(_Element):
    kind: Literal["animated"] = "animated"


class StickerPack(_Element):
    kind: Literal["sticker"] = "sticker"


MediaElement = Annotated[Union[StaticImage, AnimatedImage, StickerPack], Field(discriminator="kind")]


class QuotedMessage(BaseModel):
    message_id: str = ""
    elements: List[Mapping[str, Any]] = []


def _looks_animated(attrs: Mapping[str, Any]) -> bool:
    for key in ("file", "src", "url"):
        value = attrs.get(key)
        if isinstance(value, str) and value.lower().split("?", 1)[0].endswith(".gif"):
            return True
    return bool(attrs.get("animated"))


def normalize_element(element: Mapping[str, Any]) -> Optional[MediaElement]:
    """
    Приводит сырой элемент сообщения к закрытому варианту.
    Возвращает None для элементов, не похожих на изображение.
    """
    el_type = element.get("type")
    attrs = element.get("attrs") or {}
    if el_type in STICKER_ELEMENT_TYPES:
        # У стикер-паков URL лежит только в attrs.url
        return StickerPack(url=attrs.get("url"))
    if el_type in IMAGE_ELEMENT_TYPES:
        url = attrs.get("src") or attrs.get("url")
        if _looks_animated(attrs):
            return AnimatedImage(url=url)
        return StaticImage(url=url)
    return None


def normalize_elements(elements: Iterable[Mapping[str, Any]]) -> List[MediaElement]:
    normalized = [normalize_element(el) for el in elements or ()]
    return [el for el in normalized if el is not None]
