"""変換エンジンの共通データ型

画像変換で共通に使用するデータ型と、ファイル単位で変換を行う
Converterの基底クラスを定義する。
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from rasterconv.formats import ImageFormat


class PixelLayout(Enum):
    """正規化ピクセルバッファのレイアウト

    値はPillowの画像モード名と一致する。
    """

    RGBA8 = "RGBA"
    RGB8 = "RGB"

    @property
    def channels(self) -> int:
        """1ピクセルあたりのチャンネル数を返す"""
        return 4 if self is PixelLayout.RGBA8 else 3

    @property
    def pil_mode(self) -> str:
        """Pillowの画像モード名を返す"""
        return self.value


@dataclass(frozen=True)
class PixelBuffer:
    """形式に依存しない正規化ピクセルバッファ

    デコード段とエンコード段の間で受け渡す唯一のデータ型。
    変換呼び出しごとに生成され、呼び出し間で共有・キャッシュされない。

    Attributes:
        width: 画像の幅（ピクセル、1以上）
        height: 画像の高さ（ピクセル、1以上）
        layout: ピクセルレイアウト
        data: 行優先で並んだ生ピクセルデータ

    Raises:
        ValueError: 寸法が0以下、またはデータ長が寸法と一致しない場合
    """

    width: int
    height: int
    layout: PixelLayout
    data: bytes

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"画像サイズが不正です: {self.width}x{self.height}")
        expected = self.width * self.height * self.layout.channels
        if len(self.data) != expected:
            raise ValueError(
                f"ピクセルデータ長が不正です: 期待値 {expected}, 実際 {len(self.data)}"
            )

    @property
    def size(self) -> tuple[int, int]:
        """(幅, 高さ)のタプルを返す"""
        return (self.width, self.height)

    @property
    def has_alpha(self) -> bool:
        """アルファチャンネルを持つかどうかを返す"""
        return self.layout is PixelLayout.RGBA8


@dataclass(frozen=True)
class EncodedImage:
    """エンコード済み画像

    Attributes:
        data: コンテナ形式のバイト列
        format: 宣言された画像形式
    """

    data: bytes
    format: ImageFormat


@dataclass(frozen=True)
class ConversionRequest:
    """変換リクエスト

    Attributes:
        data: 変換元のバイト列
        source: 変換元の画像形式
        target: 変換先の画像形式
    """

    data: bytes
    source: ImageFormat
    target: ImageFormat

    @property
    def is_identity(self) -> bool:
        """変換元と変換先が同一形式かどうかを返す"""
        return self.source is self.target


@dataclass(frozen=True)
class ImageInfo:
    """画像のメタ情報

    Attributes:
        format: 画像形式
        width: 画像の幅（ピクセル）
        height: 画像の高さ（ピクセル）
        has_alpha: 変換元のピクセルモデルがアルファチャンネルを持つか
    """

    format: ImageFormat
    width: int
    height: int
    has_alpha: bool

    @property
    def layout(self) -> PixelLayout:
        """変換元のピクセルモデルに対応するレイアウトを返す"""
        return PixelLayout.RGBA8 if self.has_alpha else PixelLayout.RGB8


class ConversionStatus(Enum):
    """ファイル単位の変換結果の状態"""

    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class ConversionResult:
    """ファイル単位の変換結果

    Attributes:
        source_path: 入力ファイル
        dest_path: 書き込んだ出力ファイル（失敗・スキップ時はNone）
        status: 結果の状態
        message: 失敗・スキップの理由
        bytes_before: 入力ファイルのバイト数
        bytes_after: 出力ファイルのバイト数
    """

    source_path: Path
    dest_path: Path | None
    status: ConversionStatus
    message: str = ""
    bytes_before: int = 0
    bytes_after: int = 0

    @property
    def compression_ratio(self) -> float:
        """出力と入力のバイト数の比。入力サイズが不明（0）なら1.0"""
        if not self.bytes_before:
            return 1.0
        return self.bytes_after / self.bytes_before

    @property
    def is_success(self) -> bool:
        return self.status is ConversionStatus.SUCCESS


class BaseConverter(ABC):
    """ファイル単位の変換を行うクラスの基底

    ConversionManagerはcan_convertで担当を決め、convertで変換を依頼する。
    """

    @abstractmethod
    def can_convert(self, file_path: Path) -> bool:
        """file_pathの変換を担当できるかを返す"""
        ...

    @abstractmethod
    def convert(self, source: Path, dest: Path) -> ConversionResult:
        """sourceを変換してdestに書き込む

        Raises:
            ConverterError: 変換に失敗した場合（ConversionManagerがFAILEDとして記録する）
        """
        ...

    @property
    @abstractmethod
    def supported_extensions(self) -> tuple[str, ...]:
        """担当する拡張子（".png"のようなドット付き小文字）"""
        ...

    def get_output_extension(self, source_path: Path) -> str | None:
        """一括変換で出力ファイル名に使う拡張子。Noneなら入力の拡張子のまま"""
        return None

    def _get_file_size(self, path: Path) -> int:
        try:
            return path.stat().st_size
        except FileNotFoundError:
            return 0
