"""Entry point for running XlsxViewer as a module."""

import argparse
import sys
from pathlib import Path

from .common import EXPORT_FORMATS
from .config import load_settings
from .exceptions import ConfigError, SheetNotFound, SourceReadFailure, TableNotFound, UnreadableWorkbook
from .export import export_sheet, print_sheet
from .loader import load_workbook
from .logger import setup_logging
from .xlsx_viewer import XlsxViewer

EXIT_OK = 0
EXIT_FILE_NOT_FOUND = 2
EXIT_SHEET_NOT_FOUND = 3
EXIT_TABLE_NOT_FOUND = 4
EXIT_CONFIG_ERROR = 5
EXIT_READ_ERROR = 6


def cli(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="xv",
        description="Terminal viewer for spreadsheets (xlsx, xlsm, csv, tsv).",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="Examples:\n"
        "  %(prog)s data.xlsx                  (print the first sheet)\n"
        "  %(prog)s -i data.xlsx               (browse all sheets interactively)\n"
        "  %(prog)s -s Sales -n 20 data.xlsx   (first 20 rows of sheet Sales)\n"
        "  %(prog)s -t Orders -e csv data.xlsx (named table as CSV)\n",
    )
    parser.add_argument("file", help="Workbook to view")
    parser.add_argument("-s", "--sheet", help="Sheet to show, by name or 1-based index")
    parser.add_argument("-n", "--max-rows", type=int, help="Show at most this many rows (0 = unlimited)")
    parser.add_argument("-i", "--interactive", action="store_true", help="Browse the workbook interactively")
    parser.add_argument("-F", "--formulas", action="store_true", help="Show formulas instead of their values")
    parser.add_argument(
        "-a", "--auto-size", action="store_true", help="Fit all columns to the terminal width instead of scrolling"
    )
    parser.add_argument("-e", "--export", choices=EXPORT_FORMATS, help="Export the sheet in this format")
    parser.add_argument("-o", "--output", help="Write the export to this file instead of stdout")
    parser.add_argument("-t", "--table", help="Only show this named Excel table")
    parser.add_argument("-c", "--config", help="Configuration file (TOML)")

    args = parser.parse_args(argv)
    if args.max_rows is not None and args.max_rows < 0:
        parser.error("--max-rows must be 0 or positive")
    return args


def main(argv: list[str] | None = None) -> int:
    """Run the viewer and return the process exit code."""
    args = cli(argv)

    try:
        settings = load_settings(args.config, max_rows=args.max_rows)
    except ConfigError as e:
        print(e, file=sys.stderr)
        return EXIT_CONFIG_ERROR

    setup_logging(settings.log_level, settings.log_file)

    try:
        workbook = load_workbook(
            args.file,
            table=args.table,
            lazy_threshold=settings.lazy_threshold,
            cache_capacity=settings.cache_capacity,
            # Exports always take the whole sheet
            max_rows=0 if args.export else settings.max_rows,
        )
    except FileNotFoundError:
        print(f"File not found: {args.file}", file=sys.stderr)
        return EXIT_FILE_NOT_FOUND
    except TableNotFound as e:
        print(e, file=sys.stderr)
        return EXIT_TABLE_NOT_FOUND
    except UnreadableWorkbook as e:
        print(e, file=sys.stderr)
        return EXIT_READ_ERROR

    try:
        sheet_index = workbook.find_sheet(args.sheet) if args.sheet else 0
        sheet = workbook[sheet_index]

        if args.export:
            if args.output:
                with Path(args.output).open("w", newline="", encoding="utf-8") as f:
                    export_sheet(sheet, args.export, f, show_formulas=args.formulas)
            else:
                export_sheet(sheet, args.export, show_formulas=args.formulas)
        elif args.interactive:
            app = XlsxViewer(
                workbook,
                settings,
                sheet_index=sheet_index,
                show_formulas=args.formulas,
                auto_size=args.auto_size,
            )
            app.run()
        else:
            print_sheet(sheet, max_rows=settings.max_rows, show_formulas=args.formulas)
    except SheetNotFound as e:
        print(e, file=sys.stderr)
        return EXIT_SHEET_NOT_FOUND
    except SourceReadFailure as e:
        print(e, file=sys.stderr)
        return EXIT_READ_ERROR
    finally:
        workbook.close()

    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
