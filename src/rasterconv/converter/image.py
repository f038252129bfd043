"""画像変換モジュール

デコード → 正規化 → エンコード → 出力の順に処理を行う変換エンジンの入口。
変換元と変換先が同一形式の場合は再エンコードせずにバイト列をそのまま出力する。
どの段階で失敗しても変換全体を中断し、最も具体的なエラーを送出する。
"""

from __future__ import annotations

import os
import tempfile
from enum import Enum
from pathlib import Path

from rasterconv.converter.base import (
    BaseConverter,
    ConversionRequest,
    ConversionResult,
    ConversionStatus,
    EncodedImage,
)
from rasterconv.converter.decoder import decode, has_decoder
from rasterconv.converter.encoder import EncodeOptions, encode, has_encoder
from rasterconv.errors import (
    ConverterError,
    ReadError,
    UnsupportedFormatError,
    WriteError,
)
from rasterconv.formats import (
    ImageFormat,
    format_from_extension,
    supported_extensions,
)
from rasterconv.logger import ConvertLogger, LogConfig, VerboseLevel


class ConversionStage(Enum):
    """変換処理の段階

    START → READING → DECODING → ENCODING → WRITING → DONE の順に遷移し、
    どの段階からでもFAILEDに遷移する。
    """

    START = "start"
    READING = "reading"
    DECODING = "decoding"
    ENCODING = "encoding"
    WRITING = "writing"
    DONE = "done"
    FAILED = "failed"


def detect_format(path: Path) -> ImageFormat:
    """パスの拡張子から画像形式を判定する

    Raises:
        UnsupportedFormatError: 拡張子から形式を判定できない場合
    """
    fmt = format_from_extension(path)
    if fmt is None:
        raise UnsupportedFormatError(f"入力形式を判定できません: {path}")
    return fmt


def derive_output_path(input_path: Path, target: ImageFormat) -> Path:
    """入力パスの拡張子を変換先の正規拡張子に置き換えた出力パスを返す

    ファイルへのアクセスは行わない。

    Args:
        input_path: 入力ファイルのパス
        target: 変換先の画像形式

    Returns:
        出力ファイルのパス

    Raises:
        UnsupportedFormatError: 出力パスが入力パスと一致する場合
    """
    output_path = input_path.with_suffix(f".{target.extension}")
    # 拡張子の大文字小文字だけが異なる場合も同一ファイルとみなす
    if output_path.with_suffix(output_path.suffix.lower()) == input_path.with_suffix(
        input_path.suffix.lower()
    ):
        raise UnsupportedFormatError(f"出力パスが入力パスと同じです: {input_path}")
    return output_path


def read_source(path: Path) -> bytes:
    """入力ファイルを読み込む

    Raises:
        ReadError: ファイルを読み込めない場合
    """
    try:
        return path.read_bytes()
    except OSError as e:
        raise ReadError(f"入力ファイルを読み込めません: {path}: {e}") from e


def _write_output(path: Path, data: bytes) -> None:
    """出力ファイルを書き込む

    同じディレクトリの一時ファイルに書き込んでから置き換えるため、
    失敗時に書きかけのファイルが残らない。
    """
    tmp_path: Path | None = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            dir=path.parent, prefix=f".{path.name}.", suffix=".tmp", delete=False
        ) as tmp:
            tmp_path = Path(tmp.name)
            tmp.write(data)
        os.replace(tmp_path, path)
    except OSError as e:
        if tmp_path is not None and tmp_path.exists():
            tmp_path.unlink()
        raise WriteError(f"出力ファイルに書き込めません: {path}: {e}") from e


class ImageConverter(BaseConverter):
    """画像変換クラス

    対応形式の画像を1つの変換先形式に変換する。
    インスタンスは変換ごとの状態を保持しないため、複数スレッドから同時に使用できる。

    Attributes:
        target: 変換先の画像形式
        options: エンコード設定
    """

    def __init__(
        self,
        target: ImageFormat,
        options: EncodeOptions | None = None,
        logger: ConvertLogger | None = None,
    ) -> None:
        """ImageConverterを初期化する

        Args:
            target: 変換先の画像形式
            options: エンコード設定（Noneの場合は既定値）
            logger: ロガー（Noneの場合はエラー以外出力しない）
        """
        self._target = target
        self._options = options or EncodeOptions()
        self._logger = logger or ConvertLogger(LogConfig(verbose_level=VerboseLevel.QUIET))

    @property
    def target(self) -> ImageFormat:
        """変換先の画像形式を返す"""
        return self._target

    @property
    def options(self) -> EncodeOptions:
        """エンコード設定を返す"""
        return self._options

    @property
    def supported_extensions(self) -> tuple[str, ...]:
        """対応する拡張子のタプルを返す"""
        return supported_extensions()

    def can_convert(self, file_path: Path) -> bool:
        """拡張子から形式を判定できるファイルかを返す"""
        return format_from_extension(file_path) is not None

    def get_output_extension(self, source_path: Path) -> str | None:
        """変換後の拡張子（変換先の正規拡張子）を返す"""
        return f".{self._target.extension}"

    def _enter(self, stage: ConversionStage, detail: str) -> ConversionStage:
        self._logger.debug(f"[{stage.value}] {detail}")
        return stage

    def convert_request(self, request: ConversionRequest) -> EncodedImage:
        """変換リクエストを処理してエンコード済み画像を返す

        変換元と変換先が同一形式の場合は入力のバイト列をそのまま返す。

        Raises:
            UnsupportedFormatError: 変換経路が存在しない場合
            ConversionError: デコードまたはエンコードに失敗した場合
        """
        if request.is_identity:
            return EncodedImage(data=request.data, format=request.target)

        source, target = request.source, request.target
        if not (has_decoder(source) and has_encoder(target)):
            raise UnsupportedFormatError(
                f"{source.name}から{target.name}への変換には対応していません"
            )

        stage = self._enter(ConversionStage.DECODING, f"{source.name} ({len(request.data)} bytes)")
        try:
            buffer = decode(request.data, source)
            stage = self._enter(
                ConversionStage.ENCODING, f"{target.name} ({buffer.width}x{buffer.height})"
            )
            return EncodedImage(data=encode(buffer, target, self._options), format=target)
        except ConverterError as e:
            self._enter(ConversionStage.FAILED, f"{stage.value}: {e}")
            raise

    def convert_bytes(self, data: bytes, source: ImageFormat) -> bytes:
        """バイト列を変換先形式に変換する

        ストレージへのアクセスは行わない。

        Args:
            data: 変換元のバイト列
            source: 変換元の画像形式

        Returns:
            変換後のバイト列
        """
        request = ConversionRequest(data=data, source=source, target=self._target)
        return self.convert_request(request).data

    def convert_file(self, input_path: Path, output_path: Path) -> None:
        """入力ファイルを変換して出力ファイルに書き込む

        入力形式は拡張子から判定する。変換元と変換先が同一形式の場合は
        入力のバイト列をそのまま書き込む。

        Args:
            input_path: 入力ファイルのパス
            output_path: 出力ファイルのパス

        Raises:
            UnsupportedFormatError: 入力形式を判定できない、または変換経路が存在しない場合
            ReadError: 入力ファイルを読み込めない場合
            ConversionError: デコードまたはエンコードに失敗した場合
            WriteError: 出力ファイルに書き込めない場合
        """
        stage = self._enter(ConversionStage.START, f"{input_path} -> {output_path}")
        try:
            source = detect_format(input_path)
            stage = self._enter(ConversionStage.READING, str(input_path))
            data = read_source(input_path)
            converted = self.convert_request(
                ConversionRequest(data=data, source=source, target=self._target)
            )
            stage = self._enter(
                ConversionStage.WRITING, f"{output_path} ({len(converted.data)} bytes)"
            )
            _write_output(output_path, converted.data)
        except (ReadError, WriteError, UnsupportedFormatError) as e:
            self._enter(ConversionStage.FAILED, f"{stage.value}: {e}")
            raise
        self._enter(ConversionStage.DONE, str(output_path))

    def convert_path(self, input_path: Path) -> Path:
        """入力ファイルを変換し、拡張子を置き換えたパスに書き込む

        出力パスの検証はファイルアクセスより前に行う。

        Args:
            input_path: 入力ファイルのパス

        Returns:
            書き込んだ出力ファイルのパス

        Raises:
            UnsupportedFormatError: 出力パスが入力パスと一致する場合など
        """
        output_path = derive_output_path(input_path, self._target)
        self.convert_file(input_path, output_path)
        return output_path

    def convert(self, source: Path, dest: Path) -> ConversionResult:
        """画像ファイルを変換し、結果を返す

        エラーはそのまま送出する。失敗の記録はConversionManagerが行う。

        Args:
            source: 変換元ファイルのパス
            dest: 変換先ファイルのパス

        Returns:
            変換結果を表すConversionResultオブジェクト
        """
        self.convert_file(source, dest)
        self._logger.log_conversion(source, dest, ConversionStatus.SUCCESS.value)
        return ConversionResult(
            source_path=source,
            dest_path=dest,
            status=ConversionStatus.SUCCESS,
            bytes_before=self._get_file_size(source),
            bytes_after=self._get_file_size(dest),
        )


def convert(
    input_path: Path | str,
    output_path: Path | str,
    target: ImageFormat,
    options: EncodeOptions | None = None,
) -> None:
    """入力ファイルを変換先形式に変換して出力パスに書き込む"""
    ImageConverter(target, options).convert_file(Path(input_path), Path(output_path))


def convert_path(
    input_path: Path | str,
    target: ImageFormat,
    options: EncodeOptions | None = None,
) -> Path:
    """入力ファイルを変換し、拡張子を変換先のものに置き換えたパスに書き込む

    Returns:
        書き込んだ出力ファイルのパス
    """
    return ImageConverter(target, options).convert_path(Path(input_path))


def convert_bytes(
    data: bytes,
    source: ImageFormat,
    target: ImageFormat,
    options: EncodeOptions | None = None,
) -> bytes:
    """バイト列を変換先形式に変換する。同一形式の場合は入力をそのまま返す"""
    return ImageConverter(target, options).convert_bytes(data, source)
