"""
Batch conversion of markdown files sharing one browser.
"""

import asyncio
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from tqdm import tqdm

from .converter import MarkdownPdfConverter
from .errors import ConversionError
from .log import logger
from .options import PdfOptions


@dataclass
class BatchReport:
    converted: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.converted) + len(self.skipped) + len(self.failed)


def is_up_to_date(md_file: Path, output_pdf: Path) -> bool:
    """A PDF newer than its markdown source does not need regenerating."""
    return output_pdf.exists() and output_pdf.stat().st_mtime >= md_file.stat().st_mtime


class BatchConverter:
    """Converts many files concurrently through one MarkdownPdfConverter."""

    def __init__(
        self,
        converter: MarkdownPdfConverter,
        options: Optional[PdfOptions] = None,
        max_concurrency: int = 4,
        force: bool = False,
    ):
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.converter = converter
        self.options = options or PdfOptions()
        self.max_concurrency = max_concurrency
        self.force = force

    async def _convert_single_file(self, md_file: Path, output_dir: Path, semaphore: asyncio.Semaphore) -> Tuple[str, str]:
        """Convert a single markdown file to PDF. Returns (status, filename).

        Status is one of: 'converted', 'skipped', 'failed'.
        """
        filename = md_file.name
        output_pdf = output_dir / f"{md_file.stem}.pdf"

        if not self.force:
            if not output_pdf.exists():
                logger.debug(f"Output pdf missing for {filename} - generating")
            elif is_up_to_date(md_file, output_pdf):
                logger.info(f"Skipping {filename} - PDF is up to date")
                return "skipped", filename

        async with semaphore:
            try:
                await self.converter.convert_file(md_file, output_pdf, self.options)
            except ConversionError as e:
                logger.error(f"Failed to convert {filename} [{e.category}]: {e.message}")
                return "failed", filename
        return "converted", filename

    async def convert_all(self, md_files: Sequence[Path], output_dir: Path) -> BatchReport:
        """Convert every file in ``md_files`` into ``output_dir``."""
        report = BatchReport()
        md_files = [Path(f) for f in md_files]
        if not md_files:
            logger.warning("No markdown files to convert.")
            return report

        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"Converting {len(md_files)} markdown file(s) with up to {self.max_concurrency} at a time")

        semaphore = asyncio.Semaphore(self.max_concurrency)
        tasks = [
            asyncio.create_task(self._convert_single_file(md_file, output_dir, semaphore))
            for md_file in md_files
        ]

        with tqdm(total=len(tasks), desc="Converting files", unit="file") as pbar:
            for finished in asyncio.as_completed(tasks):
                status, filename = await finished
                if status == "converted":
                    report.converted.append(filename)
                    pbar.set_postfix_str(f"Converted: {filename}")
                elif status == "skipped":
                    report.skipped.append(filename)
                    pbar.set_postfix_str(f"Skipped: {filename}")
                else:
                    report.failed.append(filename)
                    pbar.set_postfix_str(f"Failed: {filename}")
                pbar.update(1)

        logger.success(
            f"Conversion complete: {len(report.converted)} files converted, {len(report.skipped)} files skipped, "
            f"{len(report.failed)} files failed ({report.total}/{len(md_files)} total)"
        )
        logger.info(f"PDF files saved to: {output_dir.absolute()}")
        return report
