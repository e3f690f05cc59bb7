from __future__ import annotations

import pytest

from app.models.entities import Character, Scene
from app.services.media_service import (
    character_image_filename,
    decode_data_uri,
    is_data_uri,
    safe_filename,
    scene_image_filename,
)


def test_decode_png_data_uri():
    image = decode_data_uri("data:image/png;base64,aGVsbG8=")
    assert image.content == b"hello"
    assert image.media_type == "image/png"
    assert image.extension == "png"


def test_decode_jpeg_with_params():
    image = decode_data_uri("data:image/jpeg;charset=binary;base64,eA==")
    assert image.media_type == "image/jpeg"
    assert image.extension == "jpg"


def test_decode_without_mime_defaults_to_png():
    assert decode_data_uri("data:;base64,eA==").media_type == "image/png"


@pytest.mark.parametrize("url", ["http://cdn.test/a.png", "data:image/png,plain"])
def test_decode_rejects_non_base64(url):
    with pytest.raises(ValueError):
        decode_data_uri(url)


def test_is_data_uri():
    assert is_data_uri("data:image/png;base64,eA==")
    assert not is_data_uri("https://cdn.test/x.png")


def test_safe_filename():
    assert safe_filename('a/b:c*"d"') == "a_b_c_d_"
    assert safe_filename(" .. ") == "image"


def test_scene_filenames():
    climax = Scene(id="climax", title="비 오는 밤", is_climax=True)
    chapter = Scene(id="chapter-2", chapter_number=3, title="재회/이별")
    assert scene_image_filename(climax) == "0.climax_비 오는 밤.png"
    assert scene_image_filename(chapter, "jpg") == "3.재회_이별.jpg"


def test_character_filename():
    assert character_image_filename(Character(id="char-0", name="지수")) == "지수_profile.png"
    assert character_image_filename(Character(id="char-1")) == "char-1_profile.png"
