"""Configuration module for rasterconv."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from PIL import ImageColor

from rasterconv.converter.encoder import EncodeOptions, resolve_quality

class ConfigError(Exception):
    """設定ファイル読み込みエラー"""

    pass

@dataclass(frozen=True)
class WebpConfig:
    """WebP変換設定"""

    lossless: bool = True
    quality: int | str = 80

@dataclass(frozen=True)
class JpegConfig:
    """JPEG変換設定"""

    quality: int | str = 75
    background: str | None = None

@dataclass(frozen=True)
class BatchConfig:
    """一括変換設定"""

    workers: int | None = None
    recursive: bool = True

@dataclass(frozen=True)
class RasterconvConfig:
    """ルート設定"""

    webp: WebpConfig = field(default_factory=WebpConfig)
    jpeg: JpegConfig = field(default_factory=JpegConfig)
    batch: BatchConfig = field(default_factory=BatchConfig)

    def encode_options(self) -> EncodeOptions:
        """エンコード設定を生成する

        Raises:
            ConfigError: 品質値または背景色が不正な場合
        """
        try:
            background = (
                ImageColor.getrgb(str(self.jpeg.background))[:3]
                if self.jpeg.background is not None
                else None
            )
            return EncodeOptions(
                webp_lossless=self.webp.lossless,
                webp_quality=resolve_quality(self.webp.quality),
                jpeg_quality=resolve_quality(self.jpeg.quality),
                jpeg_background=background,
            )
        except ValueError as e:
            raise ConfigError(f"設定値が不正です: {e}") from e

def load_config(path: Path) -> RasterconvConfig:
    """設定ファイルを読み込む

    Args:
        path: 設定ファイルパス

    Returns:
        RasterconvConfig: 読み込んだ設定（デフォルトとマージ済み）

    Raises:
        ConfigError: ファイル読み込み、パース、または値の検証エラー
    """
    if not path.exists():
        raise ConfigError(f"設定ファイルが見つかりません: {path}")

    try:
        with path.open(encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"YAML解析エラー: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError("設定ファイルはYAMLのマッピング形式である必要があります")

    default = get_default_config()

    config = RasterconvConfig(
        webp=_merge_webp_config(data.get("webp", {}), default.webp),
        jpeg=_merge_jpeg_config(data.get("jpeg", {}), default.jpeg),
        batch=_merge_batch_config(data.get("batch", {}), default.batch),
    )
    # 値の検証
    config.encode_options()
    if config.batch.workers is not None and (
        not isinstance(config.batch.workers, int) or config.batch.workers < 1
    ):
        raise ConfigError(f"workersは1以上の整数で指定してください: {config.batch.workers}")
    return config

def get_default_config() -> RasterconvConfig:
    """デフォルト設定を取得する"""
    return RasterconvConfig()

def _merge_webp_config(data: dict[str, Any], default: WebpConfig) -> WebpConfig:
    """WebP設定をマージする"""
    if not isinstance(data, dict):
        return default
    return WebpConfig(
        lossless=data.get("lossless", default.lossless),
        quality=data.get("quality", default.quality),
    )

def _merge_jpeg_config(data: dict[str, Any], default: JpegConfig) -> JpegConfig:
    """JPEG設定をマージする"""
    if not isinstance(data, dict):
        return default
    return JpegConfig(
        quality=data.get("quality", default.quality),
        background=data.get("background", default.background),
    )

def _merge_batch_config(data: dict[str, Any], default: BatchConfig) -> BatchConfig:
    """一括変換設定をマージする"""
    if not isinstance(data, dict):
        return default
    return BatchConfig(
        workers=data.get("workers", default.workers),
        recursive=data.get("recursive", default.recursive),
    )
