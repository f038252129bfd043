"""変換ログと一括変換の進捗表示

標準出力・標準エラー出力へのメッセージ出力を詳細度で絞り込み、
指定があればすべてのメッセージをタイムスタンプ付きでログファイルにも残す。
一括変換ではConsoleProgressDisplayがテキストの進捗バーを描画する。
"""

from __future__ import annotations

import re
import sys
from dataclasses import dataclass
from datetime import datetime
from enum import IntEnum
from pathlib import Path
from typing import TYPE_CHECKING, Protocol, TextIO

if TYPE_CHECKING:
    from rasterconv.converter.manager import ConversionSummary


class VerboseLevel(IntEnum):
    """出力の詳細度

    QUIET: エラーのみ
    NORMAL: 進捗バーと一括変換のサマリ
    VERBOSE: 変換したファイルごとの結果（-v）
    DEBUG: 変換段階の遷移（-vv）
    """

    QUIET = -1
    NORMAL = 0
    VERBOSE = 1
    DEBUG = 2


class ProgressDisplay(Protocol):
    """一括変換の進捗表示"""

    def start(self, label: str, total: int) -> None:
        """対象件数とともに処理の開始を表示する"""
        ...

    def update(self, current: int, message: str = "") -> None:
        """完了件数を更新する"""
        ...

    def finish(self, success: bool, message: str = "") -> None:
        """処理の終了を表示する"""
        ...


@dataclass
class LogConfig:
    """ConvertLoggerの設定

    Attributes:
        verbose_level: 画面に出力する詳細度
        log_file: 全メッセージを書き出すファイル（Noneの場合は書き出さない）
        use_color: 端末への出力時にANSIカラーを使うか
        use_emoji: サマリや進捗表示に絵文字を使うか
    """

    verbose_level: VerboseLevel = VerboseLevel.NORMAL
    log_file: Path | None = None
    use_color: bool = True
    use_emoji: bool = True


_RED = "\x1b[31m"
_YELLOW = "\x1b[33m"
_DIM = "\x1b[2m"
_RESET = "\x1b[0m"


class ConvertLogger:
    """変換ログ出力クラス

    画面への出力はverbose_levelで絞り込むが、ログファイルには
    レベルに関係なくすべてのメッセージを書き込む。

    使用例:
        >>> with ConvertLogger(LogConfig(verbose_level=VerboseLevel.DEBUG)) as logger:
        ...     logger.debug("[decoding] PNG (1024 bytes)")
    """

    _ANSI_ESCAPE_PATTERN = re.compile(r"\x1b\[[0-9;]*m")

    def __init__(self, config: LogConfig | None = None) -> None:
        self._config = config or LogConfig()
        self._log_file: TextIO | None = None
        if self._config.log_file:
            # closeまたは__exit__で閉じる
            self._log_file = open(self._config.log_file, "w", encoding="utf-8")  # noqa: SIM115

    def __enter__(self) -> ConvertLogger:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def close(self) -> None:
        """ログファイルを閉じる。複数回呼び出してもよい"""
        if self._log_file:
            self._log_file.close()
            self._log_file = None

    @property
    def config(self) -> LogConfig:
        return self._config

    def _emit(
        self,
        tag: str,
        message: str,
        min_level: VerboseLevel,
        *,
        prefix: str = "",
        color: str = "",
        stream: TextIO | None = None,
    ) -> None:
        """詳細度を満たす場合は画面に出力し、常にログファイルへ記録する

        Args:
            tag: ログファイルに記録するレベル名
            message: メッセージ
            min_level: 画面に出力する最低の詳細度
            prefix: 画面出力時にメッセージの前に付ける文字列
            color: 端末出力時に使うANSIカラー
            stream: 出力先（Noneの場合は標準出力）
        """
        if self._config.verbose_level >= min_level:
            out = stream or sys.stdout
            line = f"{prefix}{message}"
            if color and self._config.use_color and out.isatty():
                line = f"{color}{line}{_RESET}"
            print(line, file=out)

        if self._log_file:
            timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
            plain = self._ANSI_ESCAPE_PATTERN.sub("", message)
            self._log_file.write(f"[{timestamp}] {tag}: {plain}\n")
            self._log_file.flush()

    def info(self, message: str) -> None:
        self._emit("INFO", message, VerboseLevel.NORMAL)

    def verbose(self, message: str) -> None:
        self._emit("VERBOSE", message, VerboseLevel.VERBOSE)

    def debug(self, message: str) -> None:
        self._emit("DEBUG", message, VerboseLevel.DEBUG, color=_DIM)

    def warning(self, message: str) -> None:
        self._emit("WARNING", message, VerboseLevel.NORMAL, prefix="警告: ", color=_YELLOW)

    def error(self, message: str) -> None:
        """エラーメッセージを標準エラー出力に出力する（QUIETでも出力）"""
        self._emit(
            "ERROR",
            message,
            VerboseLevel.QUIET,
            prefix="エラー: ",
            color=_RED,
            stream=sys.stderr,
        )

    def create_progress(self) -> ProgressDisplay:
        """詳細度に応じた進捗表示を返す。QUIETでは何も表示しない"""
        if self._config.verbose_level <= VerboseLevel.QUIET:
            return NullProgressDisplay()
        return ConsoleProgressDisplay(
            use_color=self._config.use_color,
            use_emoji=self._config.use_emoji,
        )

    def log_conversion(self, source: Path, dest: Path | None, status: str) -> None:
        """1ファイルの変換結果を出力する（VERBOSE以上）

        Args:
            source: 変換元ファイルパス
            dest: 変換先ファイルパス（スキップ・失敗時はNone）
            status: ConversionStatusの値
        """
        dest_name = dest.name if dest is not None else "-"
        self.verbose(f"変換: {source.name} -> {dest_name} [{status}]")

    def log_summary(self, summary: ConversionSummary) -> None:
        """一括変換の件数を出力し、失敗したファイルをエラーとして列挙する"""
        if self._config.use_emoji:
            mark = "❌" if summary.failed else "✅"
        else:
            mark = "[NG]" if summary.failed else "[OK]"
        self.info(
            f"{mark} {summary.success}/{summary.total} converted"
            f" ({summary.skipped} skipped, {summary.failed} failed)"
        )
        for result in summary.failed_results:
            self.error(f"{result.source_path}: {result.message}")


class NullProgressDisplay:
    """何も表示しない進捗表示"""

    def start(self, label: str, total: int) -> None:
        pass

    def update(self, current: int, message: str = "") -> None:
        pass

    def finish(self, success: bool, message: str = "") -> None:
        pass


class ConsoleProgressDisplay:
    """テキストの進捗バー

    updateのたびに同じ行を書き換え、finishで改行して確定する。
    """

    BAR_WIDTH = 40

    def __init__(self, use_color: bool = True, use_emoji: bool = True) -> None:
        self._use_color = use_color
        self._use_emoji = use_emoji
        self._total = 0

    def _bar(self, filled: int) -> str:
        return "█" * filled + "░" * (self.BAR_WIDTH - filled)

    def start(self, label: str, total: int) -> None:
        self._total = total
        icon = "\U0001f504 " if self._use_emoji else ""
        print(f"{icon}{label}...")

    def update(self, current: int, message: str = "") -> None:
        if self._total <= 0:
            return
        ratio = min(current, self._total) / self._total
        suffix = f" {message}" if message else ""
        line = f"\r   [{self._bar(int(self.BAR_WIDTH * ratio))}] {int(ratio * 100)}%{suffix}"
        print(line, end="", flush=True)

    def finish(self, success: bool, message: str = "") -> None:
        if success:
            status = "100% " + ("✓" if self._use_emoji else "done")
        else:
            status = ("✗" if self._use_emoji else "failed") + (f": {message}" if message else "")
        print(f"\r   [{self._bar(self.BAR_WIDTH)}] {status}")
