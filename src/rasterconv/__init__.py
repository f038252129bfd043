"""rasterconv - 画像フォーマット変換ライブラリとCLIツール."""

from rasterconv.converter import (
    ConversionManager,
    EncodeOptions,
    ImageConverter,
    PixelBuffer,
    PixelLayout,
    convert,
    convert_bytes,
    convert_path,
    decode,
    encode,
    probe,
)
from rasterconv.errors import (
    ConversionError,
    ConverterError,
    ReadError,
    UnsupportedFormatError,
    WriteError,
)
from rasterconv.formats import ImageFormat, extension_for, format_from_extension

__version__ = "0.1.0"

__all__ = [
    "ConversionError",
    "ConversionManager",
    "ConverterError",
    "EncodeOptions",
    "ImageConverter",
    "ImageFormat",
    "PixelBuffer",
    "PixelLayout",
    "ReadError",
    "UnsupportedFormatError",
    "WriteError",
    "convert",
    "convert_bytes",
    "convert_path",
    "decode",
    "encode",
    "extension_for",
    "format_from_extension",
    "probe",
]
