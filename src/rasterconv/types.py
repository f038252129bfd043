"""共通型定義"""

from enum import IntEnum

from rasterconv.errors import (
    ConverterError,
    ReadError,
    UnsupportedFormatError,
)


class ExitCode(IntEnum):
    """CLIの終了コード"""

    SUCCESS = 0
    ERROR = 1
    INVALID_INPUT = 2
    CONFIG_ERROR = 3

    @classmethod
    def for_error(cls, error: ConverterError) -> "ExitCode":
        """変換エラーに対応する終了コードを返す"""
        if isinstance(error, (UnsupportedFormatError, ReadError)):
            return cls.INVALID_INPUT
        return cls.ERROR
