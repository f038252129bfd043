"""共通型定義のテスト"""

import pytest

from rasterconv.errors import (
    ConversionError,
    ConverterError,
    ReadError,
    UnsupportedFormatError,
    WriteError,
)
from rasterconv.types import ExitCode


class TestExitCode:
    """ExitCodeのテスト"""

    def test_values(self) -> None:
        assert ExitCode.SUCCESS == 0
        assert ExitCode.ERROR == 1
        assert ExitCode.INVALID_INPUT == 2
        assert ExitCode.CONFIG_ERROR == 3

    @pytest.mark.parametrize(
        "error,expected",
        [
            pytest.param(UnsupportedFormatError("x"), ExitCode.INVALID_INPUT, id="未対応形式"),
            pytest.param(ReadError("x"), ExitCode.INVALID_INPUT, id="読み込みエラー"),
            pytest.param(ConversionError("x"), ExitCode.ERROR, id="変換エラー"),
            pytest.param(WriteError("x"), ExitCode.ERROR, id="書き込みエラー"),
            pytest.param(ConverterError("x"), ExitCode.ERROR, id="基底クラス"),
        ],
    )
    def test_for_error(self, error: ConverterError, expected: ExitCode) -> None:
        assert ExitCode.for_error(error) is expected


@pytest.mark.parametrize(
    "error_cls",
    [UnsupportedFormatError, ReadError, ConversionError, WriteError],
)
def test_errors_share_base_class(error_cls: type[ConverterError]) -> None:
    """全ての変換エラーはConverterErrorとして捕捉できる"""
    with pytest.raises(ConverterError):
        raise error_cls("failure")
