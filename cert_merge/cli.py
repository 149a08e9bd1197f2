"""
CertMerge command line entry point.

Fills a Word template once per spreadsheet record without the browser UI.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from . import __version__
from .config import MergeSettings, configure_logging
from .docx_fill import TemplateError
from .merge import CertificateTemplate, InvalidRangeError, MailMerge, build_zip, parse_range, template_name_from_filename, write_documents
from .printing import print_all, render_print_pdf
from .records import DataFileError, load_records

logger = logging.getLogger("cert_merge")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="certmerge",
        description="Fill a DOCX certificate template once per spreadsheet record",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s template.docx people.xlsx out/
  %(prog)s template.docx people.csv --range 2-5 --zip batch.zip
  %(prog)s template.docx people.xlsx --print-pdf all.pdf
  %(prog)s template.docx --list-placeholders

Placeholders:
  {field}  {{field}}  [field]   matched to column names, ignoring case
        """,
    )
    parser.add_argument("template", help="Input DOCX template")
    parser.add_argument("data", nargs="?", help="Spreadsheet of records (.xlsx, .xls, .csv)")
    parser.add_argument("output_dir", nargs="?", help="Directory for the generated .docx files")
    parser.add_argument("--range", default="all", help='Records to export: "all", "3" or "2-5" (1-based)')
    parser.add_argument("--zip", dest="zip_file", help="Write the generated documents into one zip file")
    parser.add_argument("--print-html", help="Write a printable HTML page with every record")
    parser.add_argument("--print-pdf", help="Write a print-ready PDF with one page per record")
    parser.add_argument("--list-placeholders", action="store_true", help="Only list the template placeholders")
    parser.add_argument("--keep-unmatched", action="store_true", help="Leave tokens with no matching column untouched")
    parser.add_argument("--no-date-coercion", action="store_true", help="Do not convert date serials and date cells")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging (DEBUG level)")
    parser.add_argument("--log-file", help="Log to file in addition to console")
    parser.add_argument("--version", action="version", version=f"CertMerge v{__version__}")
    return parser


def run(args: argparse.Namespace, settings: MergeSettings) -> int:
    template_path = Path(args.template)
    if not template_path.is_file():
        logger.error("Template not found: %s", template_path)
        return 1
    if template_path.suffix.lower() != ".docx":
        logger.error("Template must be a DOCX document: %s", template_path)
        return 1

    template = CertificateTemplate.from_docx(template_path.read_bytes(), template_name_from_filename(template_path.name))
    if args.list_placeholders:
        for name in template.placeholders:
            print(name)
        return 0

    if not args.data:
        logger.error("A spreadsheet of records is required")
        return 1
    if not (args.output_dir or args.zip_file or args.print_html or args.print_pdf):
        logger.error("Nothing to do: give an output directory, --zip, --print-html or --print-pdf")
        return 1

    data_path = Path(args.data)
    record_set = load_records(data_path.read_bytes(), data_path.name, coerce_dates=settings.coerce_dates)
    job = MailMerge(template, record_set.records, blank_unmatched=settings.blank_unmatched)

    unknown = [ph for ph in template.placeholders if not any(ph.lower() == c.lower() for c in record_set.columns)]
    if unknown:
        logger.warning("Placeholders with no matching column: %s", ", ".join(unknown))

    start, end = parse_range(args.range, len(job))
    logger.info("Merging records %d-%d of %d", start, end, len(job))

    if args.output_dir or args.zip_file:
        documents = list(job.export_range(start, end))
        if args.output_dir:
            written = write_documents(documents, args.output_dir)
            logger.info("Wrote %d document(s) to %s", len(written), Path(args.output_dir).absolute())
        if args.zip_file:
            Path(args.zip_file).write_bytes(build_zip(documents))
            logger.info("Wrote %s", Path(args.zip_file).absolute())

    selected = job.records[start - 1:end]
    if args.print_html:
        Path(args.print_html).write_text(print_all(template.html, selected, settings.blank_unmatched), encoding="utf-8")
        logger.info("Wrote %s", Path(args.print_html).absolute())
    if args.print_pdf:
        pages = [job.merged_paragraphs(i) for i in range(start - 1, end)]
        Path(args.print_pdf).write_bytes(render_print_pdf(pages))
        logger.info("Wrote %s", Path(args.print_pdf).absolute())

    if job.failures:
        logger.error("%d certificate(s) could not be generated", len(job.failures))
        return 1
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = MergeSettings.from_env()
    if args.keep_unmatched:
        settings.blank_unmatched = False
    if args.no_date_coercion:
        settings.coerce_dates = False
    level = "DEBUG" if args.verbose else settings.log_level
    configure_logging(level, args.log_file or settings.log_file)

    try:
        return run(args, settings)
    except (TemplateError, DataFileError, InvalidRangeError) as e:
        logger.error("%s", e)
        return 1
    except OSError as e:
        logger.error("File error: %s", e)
        return 1
    except KeyboardInterrupt:
        logger.warning("Interrupted by user.")
        return 1


if __name__ == "__main__":
    sys.exit(main())
