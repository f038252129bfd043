"""対応画像形式の定義モジュール

変換エンジンが扱うコンテナ形式の列挙と、拡張子との対応付けを提供する。
副作用のない純粋な値のマッピングのみを行う。
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path


class ImageFormat(Enum):
    """対応画像形式

    変換元・変換先として指定できるコンテナ形式の閉じた列挙型。
    値はPillowのフォーマット名と一致する。
    """

    PNG = "PNG"
    JPEG = "JPEG"
    WEBP = "WEBP"
    GIF = "GIF"
    BMP = "BMP"
    ICO = "ICO"

    @property
    def extension(self) -> str:
        """正規の拡張子（ドットなし小文字）を返す"""
        return _CANONICAL_EXTENSIONS[self]

    @property
    def pil_format(self) -> str:
        """Pillowに渡すフォーマット名を返す"""
        return self.value


_CANONICAL_EXTENSIONS: dict[ImageFormat, str] = {
    ImageFormat.PNG: "png",
    ImageFormat.JPEG: "jpg",
    ImageFormat.WEBP: "webp",
    ImageFormat.GIF: "gif",
    ImageFormat.BMP: "bmp",
    ImageFormat.ICO: "ico",
}

# 大文字化した拡張子から形式への逆引き（JPEGのみ別名を持つ）
_EXTENSION_LOOKUP: dict[str, ImageFormat] = {
    "PNG": ImageFormat.PNG,
    "JPG": ImageFormat.JPEG,
    "JPEG": ImageFormat.JPEG,
    "WEBP": ImageFormat.WEBP,
    "GIF": ImageFormat.GIF,
    "BMP": ImageFormat.BMP,
    "ICO": ImageFormat.ICO,
}


def format_from_extension(name: str | Path) -> ImageFormat | None:
    """ファイル名の拡張子から画像形式を判定する

    最後の"."以降の文字列を大文字化して照合するため、大文字小文字は区別しない。
    ディレクトリ部分は判定に使用しない。

    Args:
        name: ファイル名またはパス

    Returns:
        対応する画像形式。拡張子がない、空、または未対応の場合はNone
    """
    file_name = Path(name).name
    _, dot, ext = file_name.rpartition(".")
    if not dot or not ext:
        return None
    return _EXTENSION_LOOKUP.get(ext.upper())


def extension_for(fmt: ImageFormat) -> str:
    """画像形式の正規拡張子を返す

    Args:
        fmt: 画像形式

    Returns:
        ドットなし小文字の拡張子（例: "png", "jpg"）
    """
    return fmt.extension


def supported_extensions() -> tuple[str, ...]:
    """認識可能な拡張子をドット付き小文字で返す"""
    return tuple(f".{ext.lower()}" for ext in _EXTENSION_LOOKUP)
