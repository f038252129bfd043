"""Converter基底モジュールのデータ型のテスト"""

from pathlib import Path

import pytest

from rasterconv.converter import (
    BaseConverter,
    ConversionRequest,
    ConversionResult,
    ConversionStatus,
    ImageInfo,
    PixelBuffer,
    PixelLayout,
)
from rasterconv.formats import ImageFormat


class MockConverter(BaseConverter):
    """テスト用の具象Converterクラス"""

    @property
    def supported_extensions(self) -> tuple[str, ...]:
        return (".png",)

    def can_convert(self, file_path: Path) -> bool:
        return file_path.suffix.lower() in self.supported_extensions

    def convert(self, source: Path, dest: Path) -> ConversionResult:
        return ConversionResult(source_path=source, dest_path=dest, status=ConversionStatus.SUCCESS)


class TestPixelLayout:
    """PixelLayoutのテスト"""

    @pytest.mark.parametrize(
        "layout,channels,mode",
        [
            pytest.param(PixelLayout.RGBA8, 4, "RGBA", id="RGBA8"),
            pytest.param(PixelLayout.RGB8, 3, "RGB", id="RGB8"),
        ],
    )
    def test_layout_properties(self, layout: PixelLayout, channels: int, mode: str) -> None:
        assert layout.channels == channels
        assert layout.pil_mode == mode


class TestPixelBuffer:
    """PixelBufferのテスト"""

    def test_valid_buffer(self) -> None:
        """寸法とデータ長が一致するバッファを作成できる"""
        buffer = PixelBuffer(width=2, height=3, layout=PixelLayout.RGBA8, data=bytes(24))
        assert buffer.size == (2, 3)
        assert buffer.has_alpha is True

    def test_rgb_buffer_has_no_alpha(self) -> None:
        buffer = PixelBuffer(width=2, height=2, layout=PixelLayout.RGB8, data=bytes(12))
        assert buffer.has_alpha is False

    @pytest.mark.parametrize(
        "width,height,layout,length",
        [
            pytest.param(0, 3, PixelLayout.RGBA8, 0, id="異常系: 幅が0"),
            pytest.param(3, 0, PixelLayout.RGBA8, 0, id="異常系: 高さが0"),
            pytest.param(2, 2, PixelLayout.RGBA8, 15, id="異常系: データ長が不足"),
            pytest.param(2, 2, PixelLayout.RGB8, 16, id="異常系: RGB8にRGBA8の長さ"),
        ],
    )
    def test_invalid_buffer(
        self, width: int, height: int, layout: PixelLayout, length: int
    ) -> None:
        """不変条件を満たさないバッファはValueError"""
        with pytest.raises(ValueError):
            PixelBuffer(width=width, height=height, layout=layout, data=bytes(length))

    def test_buffer_is_immutable(self) -> None:
        buffer = PixelBuffer(width=1, height=1, layout=PixelLayout.RGB8, data=bytes(3))
        with pytest.raises(AttributeError):
            buffer.width = 2  # type: ignore[misc]


class TestConversionRequest:
    """ConversionRequestのテスト"""

    def test_identity(self) -> None:
        request = ConversionRequest(data=b"x", source=ImageFormat.PNG, target=ImageFormat.PNG)
        assert request.is_identity is True

    def test_not_identity(self) -> None:
        request = ConversionRequest(data=b"x", source=ImageFormat.PNG, target=ImageFormat.ICO)
        assert request.is_identity is False


def test_image_info_layout() -> None:
    """アルファの有無に応じたレイアウトを返す"""
    assert ImageInfo(ImageFormat.JPEG, 1, 1, has_alpha=False).layout is PixelLayout.RGB8
    assert ImageInfo(ImageFormat.PNG, 1, 1, has_alpha=True).layout is PixelLayout.RGBA8


class TestConversionResult:
    """ConversionResultデータクラスのテスト"""

    def test_compression_ratio(self, tmp_path: Path) -> None:
        result = ConversionResult(
            source_path=tmp_path / "a.png",
            dest_path=tmp_path / "a.webp",
            status=ConversionStatus.SUCCESS,
            bytes_before=200,
            bytes_after=50,
        )
        assert result.compression_ratio == 0.25
        assert result.is_success is True

    def test_compression_ratio_zero_before(self, tmp_path: Path) -> None:
        result = ConversionResult(
            source_path=tmp_path / "a.png", dest_path=None, status=ConversionStatus.FAILED
        )
        assert result.compression_ratio == 1.0
        assert result.is_success is False


class TestBaseConverter:
    """BaseConverterのテスト"""

    def test_cannot_instantiate_abstract(self) -> None:
        with pytest.raises(TypeError):
            BaseConverter()  # type: ignore[abstract]

    def test_default_output_extension(self, tmp_path: Path) -> None:
        assert MockConverter().get_output_extension(tmp_path / "a.png") is None

    def test_get_file_size(self, tmp_path: Path) -> None:
        path = tmp_path / "a.png"
        path.write_bytes(b"12345")
        converter = MockConverter()
        assert converter._get_file_size(path) == 5
        assert converter._get_file_size(tmp_path / "missing.png") == 0
