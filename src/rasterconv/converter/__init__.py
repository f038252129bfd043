"""Converter module for rasterconv.

画像のデコード、エンコード、変換の組み立てと一括変換を提供するモジュール。
"""

from rasterconv.converter.base import (
    BaseConverter,
    ConversionRequest,
    ConversionResult,
    ConversionStatus,
    EncodedImage,
    ImageInfo,
    PixelBuffer,
    PixelLayout,
)
from rasterconv.converter.decoder import decode, probe
from rasterconv.converter.encoder import EncodeOptions, QualityPreset, encode, resolve_quality
from rasterconv.converter.image import (
    ConversionStage,
    ImageConverter,
    convert,
    convert_bytes,
    convert_path,
    derive_output_path,
)
from rasterconv.converter.manager import ConversionManager, ConversionSummary

__all__ = [
    "BaseConverter",
    "ConversionManager",
    "ConversionRequest",
    "ConversionResult",
    "ConversionStage",
    "ConversionStatus",
    "ConversionSummary",
    "EncodeOptions",
    "EncodedImage",
    "ImageConverter",
    "ImageInfo",
    "PixelBuffer",
    "PixelLayout",
    "QualityPreset",
    "convert",
    "convert_bytes",
    "convert_path",
    "decode",
    "derive_output_path",
    "encode",
    "probe",
    "resolve_quality",
]
