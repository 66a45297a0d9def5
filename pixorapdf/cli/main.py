"""
Command-line interface for the pixorapdf toolkit.
"""

import os
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from .. import __version__
from ..batch import OperationFailure, run_batch, unique_names
from ..config import (
    PAGE_SIZES,
    PERMISSIONS,
    RASTER_FORMATS,
    WATERMARK_COLORS,
    WATERMARK_POSITIONS,
    CompressOptions,
    EmbedOptions,
    MergeOptions,
    PageRange,
    ProtectOptions,
    RasterizeOptions,
    SplitOptions,
    UnprotectOptions,
    WatermarkOptions,
)
from ..core.utils import format_file_size, resolve_path
from ..exceptions import PixoraPDFError
from ..info import describe_document
from ..tools.common.interfaces import InputFile

console = Console()


def _fail(message):
    console.print(f"\n[bold red]✗ Error:[/bold red] {message}")
    sys.exit(1)


def _read_inputs(paths):
    return [InputFile(name=os.path.basename(path), data=Path(path).read_bytes()) for path in paths]


def _execute(ctx, operation, paths, build_options, output_dir, archive):
    """Build options, run *operation* and write its outputs into *output_dir*."""

    try:
        options = build_options()
    except PixoraPDFError as e:
        _fail(e)

    inputs = _read_inputs(paths)
    console.print(f"\n[bold cyan]Running {operation} on {len(inputs)} file(s)...[/bold cyan]")
    result = run_batch(operation, inputs, options, workers=ctx.obj.get("workers"))
    if isinstance(result, OperationFailure):
        _fail(result.message)

    output_dir = resolve_path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    if archive or len(result.entries) == 1:
        written = [(result.name, result.data)]
    else:
        names = unique_names([entry.name for entry in result.entries])
        written = [(name, entry.data) for name, entry in zip(names, result.entries)]

    created_files = []
    for name, data in written:
        target = os.path.join(output_dir, name)
        Path(target).write_bytes(data)
        created_files.append(target)

    console.print(f"\n[bold green]✓ Successfully created {len(created_files)} file(s)[/bold green]")
    console.print(f"[dim]Output directory: {output_dir}[/dim]")
    console.print("\n[bold]Created files:[/bold]")
    for file_path in created_files:
        console.print(f"  • {os.path.basename(file_path)} ({format_file_size(os.path.getsize(file_path))})")
    console.print()
    return result


output_dir_option = click.option(
    '--output-dir', '-o',
    default='./output',
    help='Output directory',
    type=click.Path(file_okay=False)
)
archive_option = click.option(
    '--zip', 'archive',
    is_flag=True,
    help='Write several outputs as a single ZIP archive'
)


@click.group()
@click.version_option(version=__version__)
@click.option(
    '--workers', '-w',
    type=click.IntRange(min=1),
    default=None,
    help='Process files in parallel (defaults to PIXORAPDF_WORKERS)'
)
@click.pass_context
def cli(ctx, workers):
    """
    pixorapdf - merge, split, compress, protect, watermark and convert PDF files.
    """
    ctx.ensure_object(dict)
    ctx.obj["workers"] = workers


@cli.command(name="merge")
@click.argument('input_pdfs', nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@output_dir_option
@click.option('--bookmarks', is_flag=True, help='Add one outline entry per input file')
@click.option('--no-metadata', is_flag=True, help='Do not carry over metadata of the first input')
@click.option('--title', help='Title of the merged document', type=str)
@click.pass_context
def merge(ctx, input_pdfs, output_dir, bookmarks, no_metadata, title):
    """
    Merge PDF files, in the order given, into a single PDF.

    Example:

        pixorapdf merge a.pdf b.pdf c.pdf -o merged --bookmarks
    """
    _execute(
        ctx,
        "merge",
        input_pdfs,
        lambda: MergeOptions(preserve_metadata=not no_metadata, add_bookmarks=bookmarks, title=title),
        output_dir,
        False,
    )


@cli.command(name="split")
@click.argument('input_pdfs', nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@click.option(
    '--mode', '-m',
    type=click.Choice(["range", "pages", "equal"]),
    default="range",
    help='range: one file per range, pages: one file per page, equal: N equal parts'
)
@click.option('--ranges', '-r', help="Page ranges (e.g., '1-5,6-10')", type=str)
@click.option('--parts', '-n', default=2, help='Number of parts for equal mode', type=int)
@output_dir_option
@archive_option
@click.pass_context
def split(ctx, input_pdfs, mode, ranges, parts, output_dir, archive):
    """
    Split PDF files by page ranges, into single pages or into equal parts.

    Examples:

        pixorapdf split input.pdf -r '1-3,4-10'

        pixorapdf split input.pdf -m pages

        pixorapdf split input.pdf -m equal -n 3 --zip
    """

    def build():
        parsed = PageRange.parse_many(ranges) if ranges else ()
        return SplitOptions(mode=mode, ranges=parsed, parts=parts)

    _execute(ctx, "split", input_pdfs, build, output_dir, archive)


@cli.command(name="compress")
@click.argument('input_pdfs', nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@click.option(
    '--level', '-l',
    type=click.Choice(["low", "medium", "high", "extreme"]),
    help='Compression preset (overrides the other switches)'
)
@click.option('--quality', '-q', default=80, help='JPEG quality for re-encoded images (10-100)', type=int)
@click.option('--strip-metadata', is_flag=True, help='Remove document metadata')
@click.option('--keep-images', is_flag=True, help='Do not re-encode images')
@output_dir_option
@archive_option
@click.pass_context
def compress(ctx, input_pdfs, level, quality, strip_metadata, keep_images, output_dir, archive):
    """
    Reduce the size of PDF files.

    Examples:

        pixorapdf compress input.pdf -l high

        pixorapdf compress input.pdf -q 60 --strip-metadata
    """

    def build():
        if level:
            return CompressOptions.preset(level)
        return CompressOptions(quality=quality, remove_metadata=strip_metadata, optimize_images=not keep_images)

    result = _execute(ctx, "compress", input_pdfs, build, output_dir, archive)

    table = Table(title="Compression Results")
    table.add_column("File", style="cyan")
    table.add_column("Original", style="yellow")
    table.add_column("Compressed", style="green")
    table.add_column("Saved", style="magenta")
    for path, entry in zip(input_pdfs, result.entries):
        original = os.path.getsize(path)
        saved = (original - len(entry.data)) / original * 100 if original else 0.0
        table.add_row(
            os.path.basename(path),
            format_file_size(original),
            format_file_size(len(entry.data)),
            f"{saved:.1f}%",
        )
    console.print(table)
    console.print()


@cli.command(name="protect")
@click.argument('input_pdfs', nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@click.option('--user-password', '-u', default="", help='Password required to open the document', type=str)
@click.option('--owner-password', '-p', default="", help='Password granting full access', type=str)
@click.option(
    '--allow', '-a',
    multiple=True,
    type=click.Choice(sorted(PERMISSIONS)),
    help='Permission granted to readers (repeatable; defaults to print and annotate)'
)
@click.option(
    '--strength', '-s',
    type=click.Choice(["40", "128", "256"]),
    default="128",
    help='40: RC4 40-bit, 128: RC4 128-bit, 256: AES-256'
)
@output_dir_option
@archive_option
@click.pass_context
def protect(ctx, input_pdfs, user_password, owner_password, allow, strength, output_dir, archive):
    """
    Password-protect PDF files.

    Permissions are advisory: only compliant readers honour them.

    Example:

        pixorapdf protect input.pdf -u secret -a print -s 256
    """

    def build():
        kwargs = {}
        if allow:
            kwargs["permissions"] = frozenset(allow)
        return ProtectOptions(
            user_password=user_password,
            owner_password=owner_password,
            algorithm=strength,
            **kwargs,
        )

    _execute(ctx, "protect", input_pdfs, build, output_dir, archive)


@cli.command(name="unprotect")
@click.argument('input_pdfs', nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@click.option('--password', '-p', default="", help='User or owner password', type=str)
@output_dir_option
@archive_option
@click.pass_context
def unprotect(ctx, input_pdfs, password, output_dir, archive):
    """
    Remove password protection from PDF files.

    Example:

        pixorapdf unprotect protected.pdf -p secret
    """
    _execute(ctx, "unprotect", input_pdfs, lambda: UnprotectOptions(password=password), output_dir, archive)


@cli.command(name="watermark")
@click.argument('input_pdfs', nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@click.option('--text', '-t', required=True, help='Watermark text', type=str)
@click.option('--opacity', default=0.3, help='Opacity, 0.1-1 or a percentage', type=float)
@click.option('--font-size', default=48.0, help='Font size in points (12-120)', type=float)
@click.option('--position', type=click.Choice(sorted(WATERMARK_POSITIONS)), default="center")
@click.option('--color', type=click.Choice(sorted(WATERMARK_COLORS)), default="gray")
@output_dir_option
@archive_option
@click.pass_context
def watermark(ctx, input_pdfs, text, opacity, font_size, position, color, output_dir, archive):
    """
    Stamp a text watermark on every page.

    Example:

        pixorapdf watermark input.pdf -t DRAFT --position diagonal --opacity 50
    """
    _execute(
        ctx,
        "watermark",
        input_pdfs,
        lambda: WatermarkOptions(text=text, opacity=opacity, font_size=font_size, position=position, color=color),
        output_dir,
        archive,
    )


@cli.command(name="to-images")
@click.argument('input_pdfs', nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@click.option('--format', '-f', 'fmt', type=click.Choice(sorted(RASTER_FORMATS)), default="png")
@click.option('--dpi', '-d', default=150, help='Resolution (1-1200)', type=int)
@click.option('--quality', '-q', default=90, help='JPEG/WebP quality (10-100)', type=int)
@click.option('--color-mode', type=click.Choice(["color", "grayscale", "monochrome"]), default="color")
@click.option('--pages', help="Pages to render, e.g. '1,3-5' (default: all)", type=str)
@output_dir_option
@archive_option
@click.pass_context
def to_images(ctx, input_pdfs, fmt, dpi, quality, color_mode, pages, output_dir, archive):
    """
    Render PDF pages to image files.

    Example:

        pixorapdf to-images input.pdf -f jpeg -d 200 --pages 1-3
    """

    def build():
        numbers = ()
        if pages:
            numbers = tuple(number for page_range in PageRange.parse_many(pages) for number in range(page_range.start, page_range.end + 1))
        return RasterizeOptions(format=fmt, dpi=dpi, quality=quality, color_mode=color_mode, pages=numbers)

    _execute(ctx, "pdf-to-image", input_pdfs, build, output_dir, archive)


@cli.command(name="from-images")
@click.argument('images', nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@click.option('--page-size', type=click.Choice(sorted(PAGE_SIZES)), default="a4")
@click.option('--orientation', type=click.Choice(["portrait", "landscape"]), default="portrait")
@click.option('--margin', default=20.0, help='Page margin in points', type=float)
@click.option('--no-fit', is_flag=True, help='Keep the natural image size instead of fitting the page')
@click.option('--stretch', is_flag=True, help='Fill the printable area, ignoring the aspect ratio')
@output_dir_option
@click.pass_context
def from_images(ctx, images, page_size, orientation, margin, no_fit, stretch, output_dir):
    """
    Combine images into a PDF, one image per page.

    Example:

        pixorapdf from-images scan1.png scan2.jpg --page-size letter
    """
    _execute(
        ctx,
        "image-to-pdf",
        images,
        lambda: EmbedOptions(
            page_size=page_size,
            orientation=orientation,
            margin=margin,
            fit_to_page=not no_fit,
            preserve_aspect_ratio=not stretch,
        ),
        output_dir,
        False,
    )


@cli.command(name="info")
@click.argument('input_pdf', type=click.Path(exists=True, dir_okay=False))
@click.option('--password', '-p', default=None, help='Password for encrypted files', type=str)
def show_info(input_pdf, password):
    """
    Display information about a PDF file.

    Example:

        pixorapdf info input.pdf
    """
    try:
        info = describe_document(Path(input_pdf).read_bytes(), password=password)
    except PixoraPDFError as e:
        _fail(e)

    table = Table(title=f"PDF Information: {os.path.basename(input_pdf)}")
    table.add_column("Property", style="cyan", no_wrap=True)
    table.add_column("Value", style="green")

    table.add_row("File Path", os.path.abspath(input_pdf))
    table.add_row("File Size", format_file_size(os.path.getsize(input_pdf)))
    table.add_row("PDF Version", info.version)
    table.add_row("Number of Pages", str(info.num_pages))
    table.add_row("Objects", str(info.object_count))
    table.add_row("Encrypted", "Yes" if info.is_encrypted else "No")
    for key, value in info.metadata.items():
        table.add_row(key.lstrip("/"), value)

    if info.pages:
        first = info.pages[0]
        table.add_row("Page Size", f"{first.width:.0f} x {first.height:.0f} pt")

    console.print()
    console.print(table)
    console.print()


def main():
    cli(obj={})


if __name__ == '__main__':
    main()
