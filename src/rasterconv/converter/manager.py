"""一括変換モジュール

独立した複数ファイルの変換をスレッドプールで並列に実行する。
変換同士で共有する可変状態は完了件数のカウンタのみで、ロックで保護する。
失敗した変換はリトライせずFAILEDとして記録し、残りのファイルの変換を続ける。
"""

import os
from collections.abc import Callable, Iterator
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from threading import Lock

from rasterconv.converter.base import (
    BaseConverter,
    ConversionResult,
    ConversionStatus,
)
from rasterconv.errors import ConverterError


@dataclass
class ConversionSummary:
    """一括変換の集計

    Attributes:
        total: 変換対象のファイル数
        success: 成功数
        failed: 失敗数
        skipped: スキップ数（対応するConverterがない、または出力先が入力と同じ）
        results: 入力順に並んだ個々の変換結果
    """

    total: int = 0
    success: int = 0
    failed: int = 0
    skipped: int = 0
    results: list[ConversionResult] = field(default_factory=list)

    @property
    def failed_results(self) -> list[ConversionResult]:
        return [r for r in self.results if r.status is ConversionStatus.FAILED]

    def add(self, result: ConversionResult) -> None:
        """結果を追加し、ステータスごとの件数を更新する"""
        self.results.append(result)
        if result.status is ConversionStatus.SUCCESS:
            self.success += 1
        elif result.status is ConversionStatus.SKIPPED:
            self.skipped += 1
        else:
            self.failed += 1


# (完了件数, 総件数)を受け取る
ProgressCallback = Callable[[int, int], None]


class ConversionManager:
    """複数ファイルの変換を並列に実行するクラス

    ファイルごとに最初にcan_convertを満たしたConverterで変換する。
    CLIの一括変換に加えて、呼び出し元をブロックしないsubmitを提供する。

    Attributes:
        converters: 候補となるConverterのリスト（先頭から順に判定）
        max_workers: 並列に実行する変換の最大数
        progress_callback: 1件完了するごとに呼ばれるコールバック
    """

    def __init__(
        self,
        converters: list[BaseConverter],
        max_workers: int | None = None,
        progress_callback: ProgressCallback | None = None,
    ) -> None:
        """
        Args:
            converters: 候補となるConverterのリスト
            max_workers: 最大並列数（Noneの場合はCPUコア数）
            progress_callback: 進捗コールバック
        """
        self.converters = converters
        self.max_workers = max_workers or self.calculate_workers()
        self.progress_callback = progress_callback
        self._executor: ThreadPoolExecutor | None = None
        self._executor_lock = Lock()

    def __enter__(self) -> "ConversionManager":
        return self

    def __exit__(self, *args: object) -> None:
        self.shutdown()

    def get_converter_for_file(self, file_path: Path) -> BaseConverter | None:
        """file_pathを変換できる最初のConverterを返す。なければNone"""
        return next((c for c in self.converters if c.can_convert(file_path)), None)

    def convert_one(self, source: Path, dest: Path) -> ConversionResult:
        """1ファイルを変換する

        ConverterErrorは送出せず、メッセージ付きのFAILEDとして返す。
        """
        converter = self.get_converter_for_file(source)
        if converter is None:
            return ConversionResult(
                source_path=source,
                dest_path=None,
                status=ConversionStatus.SKIPPED,
                message="対応するConverterが見つかりません",
            )

        try:
            return converter.convert(source, dest)
        except ConverterError as e:
            return ConversionResult(
                source_path=source,
                dest_path=None,
                status=ConversionStatus.FAILED,
                message=str(e),
            )

    def convert_files(self, files: list[tuple[Path, Path]]) -> ConversionSummary:
        """(変換元, 変換先)の組を並列に変換し、集計を返す

        集計の結果は完了順ではなく入力順に並ぶ。
        変換先が入力ファイルや他の組の変換先と重なる組は変換しない
        （_find_conflicts参照）。
        """
        summary = ConversionSummary(total=len(files))
        report = self._progress_reporter(summary.total)
        conflicts = self._find_conflicts(files)

        def run(indexed: tuple[int, tuple[Path, Path]]) -> ConversionResult:
            index, pair = indexed
            result = conflicts.get(index) or self.convert_one(*pair)
            report()
            return result

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            for result in executor.map(run, enumerate(files)):
                summary.add(result)

        return summary

    def _find_conflicts(self, files: list[tuple[Path, Path]]) -> dict[int, ConversionResult]:
        """出力先が衝突する組を検出し、変換せずに記録する結果を返す

        拡張子の大文字小文字だけが異なるパスは同一とみなす。対応するConverterがない組は対象外。

        - 変換先が自身の変換元と同じ組はSKIPPED
        - 変換先が他の変換元、または先に現れた組の変換先と同じ組はFAILED

        Returns:
            filesのインデックスから結果への辞書
        """

        def key(path: Path) -> Path:
            return path.with_suffix(path.suffix.lower())

        sources = {key(source): source for source, _ in files}
        claimed: dict[Path, Path] = {}
        conflicts: dict[int, ConversionResult] = {}
        for index, (source, dest) in enumerate(files):
            if self.get_converter_for_file(source) is None:
                continue
            dest_key = key(dest)
            if dest_key == key(source):
                message = f"出力先が入力ファイルと同じです: {dest}"
                status = ConversionStatus.SKIPPED
            elif dest_key in sources:
                message = f"出力先が入力ファイル{sources[dest_key]}と重なります: {dest}"
                status = ConversionStatus.FAILED
            elif dest_key in claimed:
                message = f"{claimed[dest_key]}と{source}の出力先が重なります: {dest}"
                status = ConversionStatus.FAILED
            else:
                claimed[dest_key] = source
                continue
            conflicts[index] = ConversionResult(
                source_path=source, dest_path=None, status=status, message=message
            )
        return conflicts

    def _progress_reporter(self, total: int) -> Callable[[], None]:
        completed = 0
        lock = Lock()

        def report() -> None:
            nonlocal completed
            with lock:
                completed += 1
                if self.progress_callback:
                    self.progress_callback(completed, total)

        return report

    def _iter_candidates(self, source_dir: Path, recursive: bool) -> Iterator[Path]:
        entries = source_dir.rglob("*") if recursive else source_dir.iterdir()
        for path in sorted(entries):
            if path.is_file() and self.get_converter_for_file(path) is not None:
                yield path

    def collect_directory(
        self,
        source_dir: Path,
        dest_dir: Path,
        recursive: bool = True,
    ) -> list[tuple[Path, Path]]:
        """ディレクトリ内の変換対象と変換先の組を列挙する

        変換先はsource_dirからの相対パスをdest_dirの下に置き、
        拡張子をConverterの出力拡張子に置き換えたものとする。

        Args:
            source_dir: 変換元ディレクトリ
            dest_dir: 変換先ディレクトリ
            recursive: サブディレクトリも対象にするか

        Returns:
            パスでソートされた(変換元, 変換先)のリスト
        """
        pairs: list[tuple[Path, Path]] = []
        for source in self._iter_candidates(source_dir, recursive):
            dest = dest_dir / source.relative_to(source_dir)
            converter = self.get_converter_for_file(source)
            suffix = converter.get_output_extension(source) if converter else None
            pairs.append((source, dest.with_suffix(suffix) if suffix else dest))
        return pairs

    def convert_directory(
        self,
        source_dir: Path,
        dest_dir: Path,
        recursive: bool = True,
    ) -> ConversionSummary:
        """ディレクトリ内の対応ファイルを一括変換する"""
        return self.convert_files(self.collect_directory(source_dir, dest_dir, recursive))

    def submit(self, source: Path, dest: Path) -> Future[ConversionResult]:
        """1ファイルの変換をバックグラウンドで開始し、結果のFutureを返す

        ワーカーは最初の呼び出しで起動し、shutdownまで使い回す。
        """
        with self._executor_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=self.max_workers)
            return self._executor.submit(self.convert_one, source, dest)

    def shutdown(self, wait: bool = True) -> None:
        """submit用のワーカーを停止する。再度submitすると新しく起動する"""
        with self._executor_lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=wait)

    @staticmethod
    def calculate_workers(cpu_count: int | None = None) -> int:
        """並列数の既定値（CPUコア数、最小1）を返す"""
        if cpu_count is None:
            cpu_count = os.cpu_count() or 1
        return max(1, cpu_count)
