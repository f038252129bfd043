"""画像デコードモジュール

対応形式のバイト列をデコードし、RGBA8の正規化ピクセルバッファに変換する。
形式は宣言された拡張子のみで決定し、内容からの自動判別は行わない。
宣言形式と実際の内容が一致しない場合はデコードエラーとなる。
"""

from __future__ import annotations

import io
import struct
from collections.abc import Callable

from PIL import Image
from PIL.IcoImagePlugin import IcoFile

from rasterconv.converter.base import ImageInfo, PixelBuffer, PixelLayout
from rasterconv.errors import ConversionError, UnsupportedFormatError
from rasterconv.formats import ImageFormat

# Pillowが不正な入力やエンコード失敗に対して送出しうる例外
PIL_ERRORS: tuple[type[BaseException], ...] = (
    OSError,
    SyntaxError,
    ValueError,
    EOFError,
    IndexError,
    struct.error,
    Image.DecompressionBombError,
)


def _open_standard(data: bytes, fmt: ImageFormat) -> Image.Image:
    """標準コンテナ形式の先頭フレームを読み込む

    Pillowのプラグインを宣言形式のものだけに限定して開くため、
    内容が宣言形式と異なる場合は失敗する。

    Args:
        data: エンコード済みバイト列
        fmt: 宣言された画像形式

    Returns:
        ピクセルデータ読み込み済みのPIL.Imageオブジェクト
    """
    image = Image.open(io.BytesIO(data), formats=[fmt.pil_format])
    image.load()
    return image


def _open_bitmap(data: bytes, fmt: ImageFormat) -> Image.Image:
    """BMPを読み込む

    無圧縮32bppのBMPはPillowがBGRX（4バイト目を無視）として読むため、
    4バイト目をアルファとして読み直す。全画素のアルファが0の場合は
    未使用の予約バイトとみなし、不透明のまま扱う。

    Args:
        data: BMP形式のバイト列
        fmt: 宣言された画像形式（BMP）

    Returns:
        ピクセルデータ読み込み済みのPIL.Imageオブジェクト
    """
    image = Image.open(io.BytesIO(data), formats=[fmt.pil_format])
    tile = image.tile[0] if len(image.tile) == 1 else None
    # BI_RGB (compression=0) 以外のBGRXはビットマスクでアルファ無しと明示されている
    if (
        tile is None
        or tile[0] != "raw"
        or tile[3][0] != "BGRX"
        or image.info.get("compression") != 0
    ):
        image.load()
        return image

    _, _, offset, (_, stride, orientation) = tile
    pixels = data[offset : offset + stride * image.height]
    rgba = Image.frombytes("RGBA", image.size, pixels, "raw", "BGRA", stride, orientation)
    if rgba.getextrema()[3] == (0, 0):
        rgba.close()
        image.load()
        return image

    image.close()
    return rgba


def _open_icon(data: bytes, fmt: ImageFormat) -> Image.Image:
    """アイコンバンドルから1エントリを選択して読み込む

    ピクセル面積が最大のエントリを選択する。面積が同じ場合は
    デコーダーが返す順序（色深度が高い順）で先のものを優先する。

    Args:
        data: ICO形式のバイト列
        fmt: 宣言された画像形式（ICO）

    Returns:
        選択されたエントリのPIL.Imageオブジェクト

    Raises:
        ConversionError: エントリが1つも含まれない場合
    """
    bundle = IcoFile(io.BytesIO(data))
    if not bundle.entry:
        raise ConversionError("ICOファイルにアイコンが含まれていません")

    # デコード前にディレクトリエントリの寸法で選び、選んだ1エントリだけを読み込む
    index = max(
        range(len(bundle.entry)),
        key=lambda i: bundle.entry[i].width * bundle.entry[i].height,
    )
    image = bundle.frame(index)
    image.load()
    return image


_DECODERS: dict[ImageFormat, Callable[[bytes, ImageFormat], Image.Image]] = {
    ImageFormat.PNG: _open_standard,
    ImageFormat.JPEG: _open_standard,
    ImageFormat.WEBP: _open_standard,
    ImageFormat.GIF: _open_standard,
    ImageFormat.BMP: _open_bitmap,
    ImageFormat.ICO: _open_icon,
}


def has_decoder(fmt: ImageFormat) -> bool:
    """指定形式のデコーダーが存在するかを返す"""
    return fmt in _DECODERS


def open_image(data: bytes, fmt: ImageFormat) -> Image.Image:
    """バイト列を宣言形式としてPIL.Imageに読み込む

    Args:
        data: エンコード済みバイト列
        fmt: 宣言された画像形式

    Returns:
        読み込み済みのPIL.Imageオブジェクト

    Raises:
        UnsupportedFormatError: 形式に対応するデコーダーがない場合
        ConversionError: バイト列が空、または宣言形式として不正な場合
    """
    opener = _DECODERS.get(fmt)
    if opener is None:
        raise UnsupportedFormatError(f"{fmt.name}のデコーダーがありません")
    if not data:
        raise ConversionError(f"{fmt.name}データが空です")

    try:
        image = opener(data, fmt)
    except ConversionError:
        raise
    except PIL_ERRORS as e:
        raise ConversionError(f"{fmt.name}のデコードに失敗しました: {e}") from e

    if image.width == 0 or image.height == 0:
        image.close()
        raise ConversionError(f"画像サイズが不正です: {image.width}x{image.height}")
    return image


def decode(data: bytes, fmt: ImageFormat) -> PixelBuffer:
    """バイト列をデコードしてRGBA8の正規化ピクセルバッファを返す

    アルファチャンネルを持たない形式は不透明のアルファ値を補ってRGBA8に揃える。
    アニメーション形式は先頭フレームのみを扱う。

    Args:
        data: エンコード済みバイト列
        fmt: 宣言された画像形式

    Returns:
        RGBA8レイアウトのPixelBuffer

    Raises:
        UnsupportedFormatError: 形式に対応するデコーダーがない場合
        ConversionError: デコードに失敗した場合、またはピクセルデータ長が寸法と一致しない場合
    """
    image = open_image(data, fmt)
    try:
        try:
            rgba = image.convert("RGBA")
        except PIL_ERRORS as e:
            raise ConversionError(f"RGBAへの変換に失敗しました（{image.mode}）: {e}") from e
        width, height = rgba.size
        pixels = rgba.tobytes()
    finally:
        image.close()

    expected = width * height * PixelLayout.RGBA8.channels
    if len(pixels) != expected:
        raise ConversionError(
            f"ピクセルデータ長が不正です: 期待値 {expected}, 実際 {len(pixels)}"
        )

    return PixelBuffer(width=width, height=height, layout=PixelLayout.RGBA8, data=pixels)


def probe(data: bytes, fmt: ImageFormat) -> ImageInfo:
    """画像のメタ情報を取得する

    正規化は行わず、変換元のピクセルモデルがアルファを持つかどうかを報告する。

    Args:
        data: エンコード済みバイト列
        fmt: 宣言された画像形式

    Returns:
        画像のメタ情報

    Raises:
        UnsupportedFormatError: 形式に対応するデコーダーがない場合
        ConversionError: デコードに失敗した場合
    """
    image = open_image(data, fmt)
    try:
        return ImageInfo(
            format=fmt,
            width=image.width,
            height=image.height,
            has_alpha=image.has_transparency_data,
        )
    finally:
        image.close()
