"""画像エンコードモジュール

正規化ピクセルバッファを変換先形式のバイト列にエンコードする。
変換先ごとに必要なピクセルモデルと、ロスレス/ロッシーの方針を定義する。

| 変換先 | ピクセルモデル | アルファ | 方針 |
|--------|----------------|----------|------|
| PNG    | RGBA8 | そのまま | ロスレス |
| BMP    | RGBA8 | そのまま | ロスレス |
| GIF    | RGBA8 | そのまま | 単一フレーム、形式上必要な減色のみ |
| JPEG   | RGB8  | 破棄（背景色指定時は合成） | ロッシー |
| WEBP   | RGBA8 | そのまま | 既定はロスレス、設定でロッシー |
| ICO    | RGBA8 | そのまま | 1エントリのみ（最大256x256） |
"""

from __future__ import annotations

import io
import struct
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from PIL import Image

from rasterconv.converter.base import PixelBuffer, PixelLayout
from rasterconv.converter.decoder import PIL_ERRORS
from rasterconv.errors import ConversionError, UnsupportedFormatError
from rasterconv.formats import ImageFormat

# ICOディレクトリエントリに格納できる最大の辺の長さ
ICO_MAX_DIMENSION = 256

# BITMAPFILEHEADER + BITMAPV4HEADER
_BMP_FILE_HEADER_SIZE = 14
_BMP_V4_HEADER_SIZE = 108
_BI_BITFIELDS = 3
# B, G, R, Aの順に並ぶ32bppのビットマスク
_BMP_RGBA_MASKS = (0x00FF0000, 0x0000FF00, 0x000000FF, 0xFF000000)
_LCS_SRGB = 0x73524742
# 72dpi
_BMP_PIXELS_PER_METER = 2835


class QualityPreset(Enum):
    """ロッシー変換時の品質プリセット

    HIGH/MEDIUM/LOWの3段階の品質レベルを提供する。
    """

    HIGH = 95
    MEDIUM = 85
    LOW = 70


def resolve_quality(value: QualityPreset | int | str) -> int:
    """品質指定を0-100の整数に解決する

    Args:
        value: プリセット、プリセット名（"high"等）、または0-100の整数

    Returns:
        品質値（0-100）

    Raises:
        ValueError: 未知のプリセット名、または範囲外の値の場合
    """
    if isinstance(value, QualityPreset):
        return value.value
    if isinstance(value, str):
        name = value.strip().upper()
        if name.isdigit():
            return resolve_quality(int(name))
        try:
            return QualityPreset[name].value
        except KeyError:
            raise ValueError(f"未知の品質プリセットです: {value}") from None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"品質値は整数で指定してください: {value!r}")
    if not 0 <= value <= 100:
        raise ValueError(f"品質値は0から100の範囲で指定してください: {value}")
    return value


@dataclass(frozen=True)
class EncodeOptions:
    """エンコード設定

    Attributes:
        webp_lossless: WebPをロスレスでエンコードするか（既定はロスレス）
        webp_quality: WebP品質値。ロッシー時は画質、ロスレス時は圧縮の労力として使われる
        jpeg_quality: JPEG品質値
        jpeg_background: JPEG変換時にアルファを合成する背景色。Noneの場合はアルファを破棄する
    """

    webp_lossless: bool = True
    webp_quality: int = 80
    jpeg_quality: int = 75
    jpeg_background: tuple[int, int, int] | None = None

    def __post_init__(self) -> None:
        resolve_quality(self.webp_quality)
        resolve_quality(self.jpeg_quality)
        if self.jpeg_background is not None:
            if len(self.jpeg_background) != 3 or not all(
                0 <= channel <= 255 for channel in self.jpeg_background
            ):
                raise ValueError(f"背景色はRGBの3要素で指定してください: {self.jpeg_background}")


def _to_image(buffer: PixelBuffer, layout: PixelLayout) -> Image.Image:
    """バッファを指定レイアウトのPIL.Imageに変換する"""
    image = Image.frombytes(buffer.layout.pil_mode, buffer.size, buffer.data)
    if buffer.layout is not layout:
        image = image.convert(layout.pil_mode)
    return image


def _save_png(buffer: PixelBuffer, options: EncodeOptions, out: io.BytesIO) -> None:
    _to_image(buffer, PixelLayout.RGBA8).save(out, "PNG")


def _save_bmp(buffer: PixelBuffer, options: EncodeOptions, out: io.BytesIO) -> None:
    """アルファマスク付きのBITMAPV4HEADERで32bppのBMPを書き出す

    PillowのBMPエンコーダーはRGBAを無圧縮(BI_RGB)で書き出し、4バイト目が
    アルファであることをヘッダーで示さない。アルファを読み戻せるよう
    BI_BITFIELDSとアルファマスクを明示したヘッダーを自前で組み立てる。
    """
    image = _to_image(buffer, PixelLayout.RGBA8)
    # 下の行から順に並べる
    pixels = image.tobytes("raw", "BGRA", 0, -1)
    offset = _BMP_FILE_HEADER_SIZE + _BMP_V4_HEADER_SIZE

    out.write(struct.pack("<2sIHHI", b"BM", offset + len(pixels), 0, 0, offset))
    out.write(
        struct.pack(
            "<IiiHHIIiiII",
            _BMP_V4_HEADER_SIZE,
            buffer.width,
            buffer.height,
            1,
            32,
            _BI_BITFIELDS,
            len(pixels),
            _BMP_PIXELS_PER_METER,
            _BMP_PIXELS_PER_METER,
            0,
            0,
        )
    )
    out.write(struct.pack("<4I", *_BMP_RGBA_MASKS))
    # 色空間はsRGB。エンドポイント(36バイト)とガンマ(12バイト)は未使用
    out.write(struct.pack("<I", _LCS_SRGB))
    out.write(bytes(48))
    out.write(pixels)


def _save_gif(buffer: PixelBuffer, options: EncodeOptions, out: io.BytesIO) -> None:
    # パレット化はGIF形式が要求する範囲でPillowに任せる
    _to_image(buffer, PixelLayout.RGBA8).save(out, "GIF")


def _save_jpeg(buffer: PixelBuffer, options: EncodeOptions, out: io.BytesIO) -> None:
    """JPEGで保存する

    JPEGはアルファチャンネルを持たないため、透過情報は失われる。
    背景色が指定されている場合は合成してから破棄する。
    """
    image = _to_image(buffer, PixelLayout.RGBA8)
    if options.jpeg_background is not None:
        background = Image.new("RGBA", image.size, (*options.jpeg_background, 255))
        image = Image.alpha_composite(background, image)
    image.convert("RGB").save(out, "JPEG", quality=options.jpeg_quality)


def _save_webp(buffer: PixelBuffer, options: EncodeOptions, out: io.BytesIO) -> None:
    image = _to_image(buffer, PixelLayout.RGBA8)
    if options.webp_lossless:
        image.save(out, "WEBP", lossless=True, quality=options.webp_quality)
    else:
        image.save(out, "WEBP", quality=options.webp_quality)


def _save_ico(buffer: PixelBuffer, options: EncodeOptions, out: io.BytesIO) -> None:
    """ICOで保存する

    多解像度の生成は行わず、バッファと同じサイズのエントリを1つだけ書き出す。

    Raises:
        ConversionError: 幅または高さがICOの上限を超える場合
    """
    if buffer.width > ICO_MAX_DIMENSION or buffer.height > ICO_MAX_DIMENSION:
        raise ConversionError(
            f"ICOの最大サイズ{ICO_MAX_DIMENSION}x{ICO_MAX_DIMENSION}を超えています: "
            f"{buffer.width}x{buffer.height}"
        )
    _to_image(buffer, PixelLayout.RGBA8).save(out, "ICO", sizes=[buffer.size])


_ENCODERS: dict[ImageFormat, Callable[[PixelBuffer, EncodeOptions, io.BytesIO], None]] = {
    ImageFormat.PNG: _save_png,
    ImageFormat.JPEG: _save_jpeg,
    ImageFormat.WEBP: _save_webp,
    ImageFormat.GIF: _save_gif,
    ImageFormat.BMP: _save_bmp,
    ImageFormat.ICO: _save_ico,
}


def has_encoder(fmt: ImageFormat) -> bool:
    """指定形式のエンコーダーが存在するかを返す"""
    return fmt in _ENCODERS


def encode(
    buffer: PixelBuffer,
    target: ImageFormat,
    options: EncodeOptions | None = None,
) -> bytes:
    """ピクセルバッファを変換先形式にエンコードする

    Args:
        buffer: 正規化ピクセルバッファ
        target: 変換先の画像形式
        options: エンコード設定（Noneの場合は既定値）

    Returns:
        エンコード済みバイト列

    Raises:
        UnsupportedFormatError: 形式に対応するエンコーダーがない場合
        ConversionError: エンコーダーが失敗した場合
    """
    saver = _ENCODERS.get(target)
    if saver is None:
        raise UnsupportedFormatError(f"{target.name}のエンコーダーがありません")

    out = io.BytesIO()
    try:
        saver(buffer, options or EncodeOptions(), out)
    except ConversionError:
        raise
    except PIL_ERRORS as e:
        raise ConversionError(f"{target.name}のエンコードに失敗しました: {e}") from e
    return out.getvalue()
