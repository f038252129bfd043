"""変換エラーの定義

変換処理で発生するエラーの分類。いずれも該当リクエストに対して終端であり、
リトライ可能な状態は持たない。
"""


class ConverterError(Exception):
    """変換エンジンの基底エラー"""

    pass


class UnsupportedFormatError(ConverterError):
    """形式を判定できない、または変換経路が存在しない場合のエラー"""

    pass


class ReadError(ConverterError):
    """変換元の読み込みに失敗した場合のエラー"""

    pass


class ConversionError(ConverterError):
    """デコードまたはエンコードに失敗した場合のエラー"""

    pass


class WriteError(ConverterError):
    """変換先への書き込みに失敗した場合のエラー"""

    pass
