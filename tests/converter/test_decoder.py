"""画像デコードモジュールのテスト"""

import io
from collections.abc import Callable
from unittest.mock import patch

import pytest
from PIL import Image
from PIL.IcoImagePlugin import IcoFile

from rasterconv.converter.base import PixelLayout
from rasterconv.converter.decoder import decode, has_decoder, open_image, probe
from rasterconv.converter.image import convert_bytes
from rasterconv.errors import ConversionError
from rasterconv.formats import ImageFormat

ImageBytesFactory = Callable[..., bytes]


def _alpha_values(data: bytes) -> set[int]:
    return set(data[3::4])


class TestDecode:
    """decode関数のテスト"""

    @pytest.mark.parametrize(
        "fmt,mode",
        [
            pytest.param(ImageFormat.PNG, "RGBA", id="正常系: PNG"),
            pytest.param(ImageFormat.JPEG, "RGB", id="正常系: JPEG"),
            pytest.param(ImageFormat.WEBP, "RGBA", id="正常系: WEBP"),
            pytest.param(ImageFormat.GIF, "RGB", id="正常系: GIF"),
            pytest.param(ImageFormat.BMP, "RGB", id="正常系: BMP"),
            pytest.param(ImageFormat.ICO, "RGBA", id="正常系: ICO"),
        ],
    )
    def test_decode_to_rgba8(
        self, image_bytes: ImageBytesFactory, fmt: ImageFormat, mode: str
    ) -> None:
        """全対応形式がRGBA8のバッファにデコードされる"""
        buffer = decode(image_bytes(fmt, size=(12, 7), mode=mode), fmt)

        assert buffer.layout is PixelLayout.RGBA8
        assert buffer.size == (12, 7)
        assert len(buffer.data) == 12 * 7 * 4

    @pytest.mark.parametrize(
        "fmt",
        [
            pytest.param(ImageFormat.JPEG, id="正常系: JPEG"),
            pytest.param(ImageFormat.GIF, id="正常系: GIF"),
            pytest.param(ImageFormat.BMP, id="正常系: BMP"),
        ],
    )
    def test_opaque_alpha_added(self, image_bytes: ImageBytesFactory, fmt: ImageFormat) -> None:
        """アルファを持たない入力は不透明のアルファ値で補われる"""
        buffer = decode(image_bytes(fmt, mode="RGB"), fmt)
        assert _alpha_values(buffer.data) == {255}

    def test_png_pixels_exact(self, pil_encoder: Callable[..., bytes]) -> None:
        """PNGはピクセル値がそのまま保持される"""
        image = Image.new("RGBA", (2, 1))
        image.putdata([(1, 2, 3, 4), (5, 6, 7, 8)])

        buffer = decode(pil_encoder(image, ImageFormat.PNG), ImageFormat.PNG)

        assert buffer.data == bytes([1, 2, 3, 4, 5, 6, 7, 8])

    def test_gif_first_frame_only(self) -> None:
        """アニメーションGIFは先頭フレームのみデコードされる"""
        frames = [Image.new("RGB", (8, 8), color) for color in [(255, 0, 0), (0, 0, 255)]]
        out = io.BytesIO()
        frames[0].save(out, "GIF", save_all=True, append_images=frames[1:])

        buffer = decode(out.getvalue(), ImageFormat.GIF)

        assert buffer.size == (8, 8)
        assert buffer.data[:4] == bytes([255, 0, 0, 255])

    def test_ico_selects_largest_entry(self, multi_size_ico: bytes) -> None:
        """複数エントリのICOは面積が最大のエントリが選ばれる"""
        buffer = decode(multi_size_ico, ImageFormat.ICO)
        assert buffer.size == (48, 48)

    def test_ico_transparency_preserved(self, image_bytes: ImageBytesFactory) -> None:
        """ICOの透明ピクセルはアルファ0のまま保持される"""
        data = image_bytes(ImageFormat.ICO, color=(0, 0, 0, 0))
        buffer = decode(data, ImageFormat.ICO)
        assert _alpha_values(buffer.data) == {0}

    def test_ico_decodes_only_selected_entry(self, multi_size_ico: bytes) -> None:
        """エントリの選択は寸法のみで行い、選んだエントリだけを読み込む"""
        original_frame = IcoFile.frame

        with patch.object(IcoFile, "frame", autospec=True, side_effect=original_frame) as frame:
            decode(multi_size_ico, ImageFormat.ICO)

        assert frame.call_count == 1

    def test_bmp_alpha_survives_conversion(self, image_bytes: ImageBytesFactory) -> None:
        """PNGの透明ピクセルはBMPを経由してもアルファ0のまま保持される"""
        png = image_bytes(ImageFormat.PNG, color=(0, 0, 0, 0))
        bmp = convert_bytes(png, ImageFormat.PNG, ImageFormat.BMP)

        buffer = decode(bmp, ImageFormat.BMP)

        assert _alpha_values(buffer.data) == {0}

    def test_bmp_rgb_with_alpha_byte(self, pil_encoder: Callable[..., bytes]) -> None:
        """無圧縮32bppのBMPは4バイト目をアルファとして読む"""
        image = Image.new("RGBA", (2, 1))
        image.putdata([(10, 20, 30, 0), (40, 50, 60, 200)])

        buffer = decode(pil_encoder(image, ImageFormat.BMP), ImageFormat.BMP)

        assert buffer.data == bytes([10, 20, 30, 0, 40, 50, 60, 200])

    def test_bmp_zero_alpha_byte_is_opaque(self, image_bytes: ImageBytesFactory) -> None:
        """無圧縮32bppで4バイト目が全て0のBMPは不透明として扱う"""
        data = image_bytes(ImageFormat.BMP, color=(10, 20, 30, 0))

        buffer = decode(data, ImageFormat.BMP)

        assert buffer.data[:4] == bytes([10, 20, 30, 255])
        assert _alpha_values(buffer.data) == {255}


class TestDecodeErrors:
    """デコード失敗時のテスト"""

    @pytest.mark.parametrize(
        "fmt",
        [pytest.param(fmt, id=f"異常系: 空の{fmt.name}") for fmt in ImageFormat],
    )
    def test_empty_data(self, fmt: ImageFormat) -> None:
        """空のバイト列はConversionError"""
        with pytest.raises(ConversionError):
            decode(b"", fmt)

    def test_garbage_declared_as_ico(self) -> None:
        """ICOヘッダーでない4バイトはConversionError"""
        with pytest.raises(ConversionError):
            decode(b"\x01\x02\x03\x04", ImageFormat.ICO)

    def test_ico_without_entries(self, empty_ico: bytes) -> None:
        """エントリを持たないICOはConversionError"""
        with pytest.raises(ConversionError, match="アイコン"):
            decode(empty_ico, ImageFormat.ICO)

    def test_declared_format_mismatch(self, image_bytes: ImageBytesFactory) -> None:
        """PNGのバイト列をJPEGとして宣言した場合は内容から判別せずに失敗する"""
        with pytest.raises(ConversionError):
            decode(image_bytes(ImageFormat.PNG), ImageFormat.JPEG)

    def test_truncated_png(self, image_bytes: ImageBytesFactory) -> None:
        """途中で切れたPNGはConversionError"""
        data = image_bytes(ImageFormat.PNG, size=(64, 64), mode="RGB")
        with pytest.raises(ConversionError):
            decode(data[: len(data) // 2], ImageFormat.PNG)

    def test_error_is_not_leaked_as_pil_error(self) -> None:
        """Pillowの例外は変換エラーとして送出される"""
        with pytest.raises(ConversionError) as exc_info:
            decode(b"not an image", ImageFormat.PNG)
        assert exc_info.value.__cause__ is not None


def test_has_decoder_for_all_formats() -> None:
    """全対応形式にデコーダーが存在する"""
    assert all(has_decoder(fmt) for fmt in ImageFormat)


def test_open_image_returns_loaded_image(image_bytes: ImageBytesFactory) -> None:
    image = open_image(image_bytes(ImageFormat.WEBP, size=(5, 6)), ImageFormat.WEBP)
    assert image.size == (5, 6)


class TestProbe:
    """probe関数のテスト"""

    @pytest.mark.parametrize(
        "fmt,mode,has_alpha",
        [
            pytest.param(ImageFormat.PNG, "RGBA", True, id="正常系: RGBAのPNG"),
            pytest.param(ImageFormat.PNG, "RGB", False, id="正常系: RGBのPNG"),
            pytest.param(ImageFormat.JPEG, "RGB", False, id="正常系: JPEG"),
            pytest.param(ImageFormat.BMP, "RGB", False, id="正常系: BMP"),
            pytest.param(ImageFormat.ICO, "RGBA", True, id="正常系: ICO"),
        ],
    )
    def test_probe_alpha(
        self, image_bytes: ImageBytesFactory, fmt: ImageFormat, mode: str, has_alpha: bool
    ) -> None:
        """変換元のピクセルモデルのアルファ有無を報告する"""
        info = probe(image_bytes(fmt, size=(20, 10), mode=mode), fmt)

        assert info.format is fmt
        assert (info.width, info.height) == (20, 10)
        assert info.has_alpha is has_alpha
        expected_layout = PixelLayout.RGBA8 if has_alpha else PixelLayout.RGB8
        assert info.layout is expected_layout

    def test_probe_converted_bmp_has_alpha(self, image_bytes: ImageBytesFactory) -> None:
        bmp = convert_bytes(image_bytes(ImageFormat.PNG), ImageFormat.PNG, ImageFormat.BMP)
        assert probe(bmp, ImageFormat.BMP).has_alpha is True

    def test_probe_invalid_data(self) -> None:
        with pytest.raises(ConversionError):
            probe(b"\x00" * 16, ImageFormat.GIF)
