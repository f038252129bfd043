"""CLI entry point for rasterconv."""

import dataclasses
from pathlib import Path
from typing import Annotated

import typer
from PIL import ImageColor
from rich.console import Console
from rich.table import Table

from rasterconv import __version__
from rasterconv.config import ConfigError, RasterconvConfig, get_default_config, load_config
from rasterconv.converter import (
    ConversionManager,
    EncodeOptions,
    ImageConverter,
    probe,
    resolve_quality,
)
from rasterconv.converter.image import detect_format, read_source
from rasterconv.errors import ConverterError
from rasterconv.formats import ImageFormat, format_from_extension
from rasterconv.logger import ConvertLogger, LogConfig, VerboseLevel
from rasterconv.types import ExitCode

app = typer.Typer(help="画像フォーマットを相互変換するCLIツール")
console = Console()


def _format_size(size_bytes: int) -> str:
    """バイト数を人間が読みやすい形式に変換する"""
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    else:
        return f"{size_bytes / (1024 * 1024):.1f} MB"


def _parse_target(value: str) -> ImageFormat:
    """変換先形式の指定（"png", ".JPG"等）を解釈する"""
    fmt = format_from_extension(f".{value.lstrip('.')}")
    if fmt is None:
        console.print(f"[red]Error: 未対応の変換先形式です: {value}[/red]")
        raise typer.Exit(ExitCode.INVALID_INPUT)
    return fmt


def _load_settings(config_path: Path | None) -> RasterconvConfig:
    if config_path is None:
        return get_default_config()
    try:
        return load_config(config_path)
    except ConfigError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(ExitCode.CONFIG_ERROR) from e


def _build_options(
    settings: RasterconvConfig,
    target: ImageFormat,
    quality: str | None,
    webp_lossy: bool,
    background: str | None,
) -> EncodeOptions:
    """設定ファイルの値にコマンドラインの指定を上書きしてエンコード設定を作る"""
    try:
        options = settings.encode_options()
        if webp_lossy:
            options = dataclasses.replace(options, webp_lossless=False)
        if quality is not None:
            value = resolve_quality(quality)
            if target is ImageFormat.JPEG:
                options = dataclasses.replace(options, jpeg_quality=value)
            elif target is ImageFormat.WEBP:
                options = dataclasses.replace(options, webp_quality=value)
        if background is not None:
            options = dataclasses.replace(
                options, jpeg_background=ImageColor.getrgb(background)[:3]
            )
    except (ConfigError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(ExitCode.CONFIG_ERROR) from e
    return options


def _create_logger(verbose: int, log_file: Path | None) -> ConvertLogger:
    level = VerboseLevel(min(verbose, VerboseLevel.DEBUG))
    return ConvertLogger(LogConfig(verbose_level=level, log_file=log_file))


# --qualityが効く変換先
_QUALITY_TARGETS = (ImageFormat.JPEG, ImageFormat.WEBP)


def _warn_unused_quality(
    logger: ConvertLogger, target: ImageFormat, quality: str | None
) -> None:
    if quality is not None and target not in _QUALITY_TARGETS:
        logger.warning(f"--qualityは{target.name}の出力には使われません")


@app.command()
def convert(
    input_path: Annotated[Path, typer.Argument(help="入力画像パス")],
    target: Annotated[str, typer.Argument(help="変換先形式（png/jpg/webp/gif/bmp/ico）")],
    output: Annotated[Path | None, typer.Option("-o", "--output", help="出力パス")] = None,
    config: Annotated[Path | None, typer.Option(help="設定ファイル（YAML）")] = None,
    quality: Annotated[
        str | None, typer.Option(help="品質（0-100 または high/medium/low）")
    ] = None,
    webp_lossy: Annotated[bool, typer.Option(help="WebPをロッシーで出力")] = False,
    background: Annotated[
        str | None, typer.Option(help="JPEG変換時の背景色（例: white, #ffffff）")
    ] = None,
    verbose: Annotated[int, typer.Option("-v", "--verbose", count=True, help="詳細ログ出力")] = 0,
    log_file: Annotated[Path | None, typer.Option(help="ログファイル出力先")] = None,
) -> None:
    """画像を別の形式に変換する"""
    target_format = _parse_target(target)
    settings = _load_settings(config)
    options = _build_options(settings, target_format, quality, webp_lossy, background)

    with _create_logger(verbose, log_file) as logger:
        _warn_unused_quality(logger, target_format, quality)
        converter = ImageConverter(target_format, options, logger)
        try:
            if output is None:
                output = converter.convert_path(input_path)
            else:
                converter.convert_file(input_path, output)
        except ConverterError as e:
            logger.error(str(e))
            console.print(f"[red]変換失敗: {input_path}[/red]")
            raise typer.Exit(ExitCode.for_error(e)) from e

    console.print(f"[green]変換完了: {output}[/green]")
    raise typer.Exit(ExitCode.SUCCESS)


@app.command()
def batch(
    source_dir: Annotated[Path, typer.Argument(help="入力ディレクトリ")],
    target: Annotated[str, typer.Argument(help="変換先形式（png/jpg/webp/gif/bmp/ico）")],
    output: Annotated[
        Path | None, typer.Option("-o", "--output", help="出力ディレクトリ")
    ] = None,
    workers: Annotated[int | None, typer.Option(help="並列ワーカー数")] = None,
    recursive: Annotated[
        bool | None, typer.Option("--recursive/--no-recursive", help="サブディレクトリも処理")
    ] = None,
    config: Annotated[Path | None, typer.Option(help="設定ファイル（YAML）")] = None,
    quality: Annotated[
        str | None, typer.Option(help="品質（0-100 または high/medium/low）")
    ] = None,
    webp_lossy: Annotated[bool, typer.Option(help="WebPをロッシーで出力")] = False,
    verbose: Annotated[int, typer.Option("-v", "--verbose", count=True, help="詳細ログ出力")] = 0,
    log_file: Annotated[Path | None, typer.Option(help="ログファイル出力先")] = None,
) -> None:
    """ディレクトリ内の画像を一括変換する"""
    if not source_dir.is_dir():
        console.print(f"[red]Error: ディレクトリを指定してください: {source_dir}[/red]")
        raise typer.Exit(ExitCode.INVALID_INPUT)

    target_format = _parse_target(target)
    settings = _load_settings(config)
    options = _build_options(settings, target_format, quality, webp_lossy, None)
    dest_dir = output or source_dir
    use_recursive = settings.batch.recursive if recursive is None else recursive

    with _create_logger(verbose, log_file) as logger:
        _warn_unused_quality(logger, target_format, quality)
        progress = logger.create_progress()

        def progress_callback(current: int, total: int) -> None:
            progress.update(current)

        manager = ConversionManager(
            [ImageConverter(target_format, options, logger)],
            max_workers=workers or settings.batch.workers,
            progress_callback=progress_callback,
        )
        files = manager.collect_directory(source_dir, dest_dir, recursive=use_recursive)
        progress.start(f"Converting {len(files)} files to {target_format.name}", len(files))
        summary = manager.convert_files(files)
        progress.finish(summary.failed == 0)
        logger.log_summary(summary)

    raise typer.Exit(ExitCode.SUCCESS if summary.failed == 0 else ExitCode.ERROR)


@app.command()
def info(
    input_path: Annotated[Path, typer.Argument(help="解析対象の画像パス")],
) -> None:
    """画像の形式・サイズ・アルファの有無を表示する"""
    try:
        fmt = detect_format(input_path)
        data = read_source(input_path)
        image_info = probe(data, fmt)
    except ConverterError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(ExitCode.for_error(e)) from e

    table = Table(title="Image Info")
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Format", image_info.format.name)
    table.add_row("Size", f"{image_info.width}x{image_info.height}")
    table.add_row("Layout", image_info.layout.name)
    table.add_row("Alpha", "yes" if image_info.has_alpha else "no")
    table.add_row("File Size", _format_size(len(data)))

    console.print(table)
    raise typer.Exit(ExitCode.SUCCESS)


@app.command()
def formats() -> None:
    """対応形式の一覧を表示する"""
    table = Table(title="Supported Formats")
    table.add_column("Format", style="cyan")
    table.add_column("Extension", style="green")

    for fmt in ImageFormat:
        table.add_row(fmt.name, fmt.extension)

    console.print(table)
    raise typer.Exit(ExitCode.SUCCESS)


def version_callback(value: bool) -> None:
    """バージョン表示コールバック"""
    if value:
        typer.echo(f"rasterconv {__version__}")
        raise typer.Exit(0)


@app.callback()
def main(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=version_callback,
            is_eager=True,
            help="バージョンを表示する",
        ),
    ] = False,
) -> None:
    """rasterconv CLI - 画像フォーマット変換"""
    pass
