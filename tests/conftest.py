"""テスト共通フィクスチャ

テスト用の画像はPillowでメモリ上に生成する。
"""

import io
from collections.abc import Callable

import pytest
from PIL import Image

from rasterconv.formats import ImageFormat

ImageBytesFactory = Callable[..., bytes]


def encode_pil(image: Image.Image, fmt: ImageFormat, **params: object) -> bytes:
    """PIL.Imageを指定形式のバイト列に保存する"""
    if fmt is ImageFormat.JPEG and image.mode != "RGB":
        image = image.convert("RGB")
    if fmt is ImageFormat.ICO and "sizes" not in params:
        params["sizes"] = [image.size]
    out = io.BytesIO()
    image.save(out, fmt.pil_format, **params)
    return out.getvalue()


@pytest.fixture
def image_bytes() -> ImageBytesFactory:
    """単色画像を指定形式でエンコードしたバイト列を返すファクトリ"""

    def factory(
        fmt: ImageFormat,
        size: tuple[int, int] = (16, 16),
        mode: str = "RGBA",
        color: tuple[int, ...] = (200, 40, 20, 255),
    ) -> bytes:
        fill = color[0] if len(mode) == 1 else color[: len(mode)]
        image = Image.new(mode, size, fill)
        return encode_pil(image, fmt)

    return factory


@pytest.fixture
def multi_size_ico() -> bytes:
    """16x16, 32x32, 48x48の3エントリを持つICOバイト列"""
    image = Image.new("RGBA", (48, 48), (10, 20, 30, 255))
    return encode_pil(image, ImageFormat.ICO, sizes=[(16, 16), (32, 32), (48, 48)])


@pytest.fixture
def empty_ico() -> bytes:
    """エントリ数0のICOヘッダーのみのバイト列"""
    # reserved=0, type=1(icon), count=0
    return b"\x00\x00\x01\x00\x00\x00"


@pytest.fixture
def pil_encoder() -> Callable[..., bytes]:
    """PIL.Imageを指定形式で保存する関数を返す"""
    return encode_pil
