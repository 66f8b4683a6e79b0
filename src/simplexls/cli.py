"""Command line interface for inspecting xlsx sheets and model column plans."""

import argparse
import importlib
import logging
import sys
import textwrap
from pathlib import Path

from simplexls import __version__, config, setup_logging
from simplexls.errors import XLSXError
from simplexls.xlsx_api import Importer
from simplexls.xlsx_common import SheetImportSettings, describe_model

logger = logging.getLogger(__name__)


def process_common_options(args, raw_args):
    # set up logging
    loglevel = logging.INFO + (args.quieter - args.verboser) * 10
    logfile = args.logfile
    if logfile is None:
        setup_logging(loglevel)
    else:
        logfile.parents[0].mkdir(exist_ok=True, parents=True)
        setup_logging(loglevel, logfile)

    logger.info("Executing cmd: simplexls %s", " ".join(raw_args))
    logger.debug("Processing common options.")

    # load config
    if args.config is not None:
        if args.config.exists():
            config.load_config(config_file=Path(args.config))
        else:
            msg = "Config file not found at: %s"
            logger.error(msg, args.config)
            raise XLSXError(msg % args.config)


class DecentFormatter(argparse.HelpFormatter):
    """
    An argparse formatter that preserves newlines & keeps indentation.
    """

    def _fill_text(self, text, width, indent):
        """
        Reformat text while keeping newlines for lines shorter than width.
        """
        lines = []
        for line in textwrap.indent(textwrap.dedent(text), indent).splitlines():
            lines.append(textwrap.fill(line, width, subsequent_indent=indent))
        return "\n".join(lines)

    def _split_lines(self, text, width):
        """
        Conserve indentation in help/description lines when splitting long lines.
        """
        lines = []
        for line in textwrap.dedent(text).splitlines():
            if not line.strip():  # pragma: no cover
                continue
            indent = " " * (len(line) - len(line.lstrip()))
            lines.extend(
                textwrap.fill(line, width, subsequent_indent=indent).splitlines()
            )
        return lines


def root_cmd(args):
    if args.version:
        print(f"simplexls {__version__}")


def raw_cmd(args):
    """Print the cells of a sheet as tab separated lines."""
    if not args.FILE.exists():
        msg = "File not found: %s"
        logger.error(msg, args.FILE)
        raise XLSXError(msg % args.FILE)

    settings = config.CONFIG.import_.to_settings()
    settings = SheetImportSettings(
        has_header=settings.has_header and not args.no_header,
        break_on_error=settings.break_on_error or args.break_on_error,
    )
    sheet_index = args.sheet or config.CONFIG.import_.sheet_index
    with Importer.open(args.FILE) as importer:
        table = importer.import_raw(sheet_index, settings)

    def fmt(values):
        return "\t".join("" if v is None else str(v) for v in values)

    if table.headers is not None:
        print(fmt(table.headers))
    for row in table.values:
        print(fmt(row))
    logger.debug("-> Printed %i data row(s).", len(table.values))


def load_model(model_path: str):
    """Import a model class given as "package.module:ClassName"."""
    module_name, _, class_name = model_path.partition(":")
    if not module_name or not class_name:
        msg = f'Expected model as "module:ClassName", got "{model_path}".'
        raise XLSXError(msg)
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        msg = f'Cannot import module "{module_name}": {e}'
        raise XLSXError(msg) from e
    model = getattr(module, class_name, None)
    if model is None:
        msg = f'Module "{module_name}" has no attribute "{class_name}".'
        raise XLSXError(msg)
    return model


def describe_cmd(args):
    """Print the column plan of a model."""
    model = load_model(args.MODEL)
    try:
        descriptor = describe_model(model)
    except TypeError as e:
        raise XLSXError(str(e)) from e

    print(f"Sheet: {descriptor.name}")
    if descriptor.dictionary_prefix:
        print(f"Dictionary prefix: {descriptor.dictionary_prefix}")
    col_idx = 0
    for column in descriptor.columns:
        if column.attributes.ignore:
            position = "-"
        else:
            col_idx += 1
            position = str(col_idx)
        print(
            f"{position:>3}  {column.key:<20} {column.attributes.heading:<25} "
            f"{column.kind.value}"
        )


def create_root_parser():
    parser = argparse.ArgumentParser(
        prog="simplexls",
        description=(
            "A command-line tool to inspect xlsx sheets and the column layout "
            "that simplexls uses for pydantic models."
        ),
        allow_abbrev=False,
        formatter_class=DecentFormatter,
    )
    parser.add_argument(
        "-V",
        "--version",
        help="The version of simplexls command line interface.",
        action="store_true",
    )
    parser.set_defaults(func=root_cmd)
    return parser


def create_common_options_parser():
    parser = argparse.ArgumentParser(
        prog="simplexls",
        allow_abbrev=False,
        add_help=False,
        formatter_class=DecentFormatter,
    )
    group = parser.add_mutually_exclusive_group()
    group.add_argument(
        "-v",
        "--verbose",
        action="count",
        dest="verboser",
        default=0,
        help="More verbose output. Repeat to increase verbosity (-vv or -vvv).",
    )
    group.add_argument(
        "-q",
        "--quiet",
        action="count",
        default=0,
        dest="quieter",
        help="Less verbose output. Repeat to reduce verbosity (-qq or -qqq).",
    )
    parser.add_argument(
        "--config",
        help=('Path to config file (typically "simplexls.toml").'),
        type=Path,
        required=False,
    )
    parser.add_argument(
        "-l",
        "--logfile",
        help=(
            "Activate logging to a file at given path. "
            "The path will be created if it is not existing."
        ),
        type=Path,
    )
    return parser


def add_raw_subparser(subparsers, options):
    """Type-free dump of a sheet."""
    parser = subparsers.add_parser(
        "raw",
        description=(
            "Print the content of a sheet as tab separated lines. "
            "The header row is printed first unless --no-header is given."
        ),
        help="Print the raw content of a sheet.",
        **options,
    )
    parser.add_argument(
        "--sheet",
        help="1-based index of the sheet to read. (default: from config or 1)",
        type=int,
        default=None,
    )
    parser.add_argument(
        "--no-header",
        help="Treat the first row as data instead of header.",
        default=False,
        action="store_true",
    )
    parser.add_argument(
        "--break-on-error",
        help="Stop at the first cell that cannot be read.",
        default=False,
        action="store_true",
    )
    parser.add_argument(
        "FILE",
        type=Path,
        help="The xlsx file to read.",
    )
    parser.set_defaults(func=raw_cmd)


def add_describe_subparser(subparsers, options):
    """Column plan of a model."""
    parser = subparsers.add_parser(
        "describe",
        description=(
            "Print the columns a pydantic model is mapped to. Ignored fields "
            'are listed with position "-".'
        ),
        help="Describe the column layout of a model.",
        **options,
    )
    parser.add_argument(
        "MODEL",
        help='The model class as "package.module:ClassName".',
    )
    parser.set_defaults(func=describe_cmd)


def main_cli(raw_args=None):
    """Setup CLI app and run commands based on args."""
    # Create root parser for cli app
    parser = create_root_parser()

    subparsers = parser.add_subparsers(
        title="Subcommands",
        dest="subcommand",
        description="Get help for commands with simplexls COMMAND --help",
    )
    # Create parser to share some options between subparsers. We cannot use the
    # root parser for this because it includes the sub-commands and their help.
    common_options_parser = create_common_options_parser()

    # Create the subparsers with some common options
    common_options = {
        "parents": [common_options_parser],
        "formatter_class": DecentFormatter,
    }
    add_raw_subparser(subparsers, common_options)
    add_describe_subparser(subparsers, common_options)

    if not raw_args:
        parser.print_help()
        return

    # Parse the command-line arguments
    #   pars_args will call sys.exit(2) if invalid commands are given.
    args = parser.parse_args(raw_args)
    if hasattr(args, "config"):
        process_common_options(args, raw_args)
    args.func(args)


def run_cli_app(raw_args=None):
    """Entry point for running the cli app."""
    if raw_args is None:
        raw_args = sys.argv[1:]
    try:
        main_cli(raw_args)
    except XLSXError as e:
        logger.error("Terminating with error: %s", e)  # noqa: TRY400
        sys.exit(1)
    except Exception:  # pragma: no cover
        logger.exception("Unexpected error.")
        sys.exit(3)  # value 2 is used by argparse for invalid args.


if __name__ == "__main__":
    run_cli_app(sys.argv[1:])
