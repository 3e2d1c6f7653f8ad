#!/usr/bin/env python3
"""
Confluence Space PDF Exporter - Main CLI Entry Point

Exports every page of a Confluence space to PDF through the Confluence web UI,
mirroring the page hierarchy on disk. Completed pages are recorded in an
export history so an interrupted run resumes where it stopped.
"""

import argparse
import logging
import os
import sys

import yaml

from config_loader import ConfigLoader, ExportSettings
from errors import AuthenticationError, ExporterError
from logger import log_config, log_section, setup_logging
from orchestrator import ExportOrchestrator, ExportReport
from session import BrowserSession

# Version
__version__ = "1.0.0"

DEFAULT_CONFIG = 'config.yaml'


def create_argument_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser for CLI."""
    parser = argparse.ArgumentParser(
        description="Export all pages of a Confluence space to PDF",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Create the browser session (opens a window, log in, press ENTER)
  python export_pdfs.py --login --space https://example.atlassian.net/wiki/spaces/ENG/overview

  # Export using config.yaml
  python export_pdfs.py --config config.yaml

  # Export a space by key
  python export_pdfs.py --space ENG --base-url https://example.atlassian.net/wiki

  # Discover pages by scrolling the page list instead of the REST API
  python export_pdfs.py --discovery scroll --headless

  # Verbose logging
  python export_pdfs.py -vv
        """
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {__version__}'
    )

    parser.add_argument(
        '--config',
        type=str,
        default=DEFAULT_CONFIG,
        help=f'Path to configuration YAML file (default: {DEFAULT_CONFIG})'
    )

    parser.add_argument(
        '--space',
        type=str,
        help='Space URL or space key to export'
    )

    parser.add_argument(
        '--base-url',
        type=str,
        help='Confluence base URL, required when --space is a bare key'
    )

    parser.add_argument(
        '--output-dir',
        type=str,
        help='Directory for exported PDFs and the export history'
    )

    parser.add_argument(
        '--session-file',
        type=str,
        help='Browser session storage file (default: auth.json)'
    )

    parser.add_argument(
        '--discovery',
        choices=['api', 'scroll'],
        help='Page discovery strategy (default: api)'
    )

    parser.add_argument(
        '--flow',
        choices=['ui', 'direct'],
        help='Export flow: click through the UI or open the export endpoint (default: ui)'
    )

    parser.add_argument(
        '--headless',
        action=argparse.BooleanOptionalAction,
        default=None,
        help='Run the browser without a window'
    )

    parser.add_argument(
        '--timeout',
        type=int,
        help='Navigation and download timeout in milliseconds (default: 60000)'
    )

    parser.add_argument(
        '--retry',
        action=argparse.BooleanOptionalAction,
        default=None,
        help='Retry failed pages within the run'
    )

    parser.add_argument(
        '--max-retries',
        type=int,
        help='Extra attempts per page when retry is enabled (default: 3)'
    )

    parser.add_argument(
        '--csv-report',
        type=str,
        help='Also write a per-page CSV report to this path'
    )

    parser.add_argument(
        '--login',
        action='store_true',
        help='Open a browser to log in, save the session file and exit'
    )

    parser.add_argument(
        '-v', '--verbose',
        action='count',
        default=0,
        help='Increase verbosity (-v for INFO, -vv for DEBUG)'
    )

    return parser


def load_configuration(args: argparse.Namespace, logger: logging.Logger) -> dict:
    """Load the config file, tolerating a missing default file when --space is given."""
    if args.config == DEFAULT_CONFIG and not os.path.exists(args.config) and args.space:
        logger.info(f"No {DEFAULT_CONFIG} found, using command line options and defaults")
        config = {}
    else:
        logger.info(f"Loading configuration from {args.config}")
        config = ConfigLoader.load(args.config)

    return ConfigLoader.merge_with_args(config, args)


def run_login(settings: ExportSettings, logger: logging.Logger) -> int:
    """Run the interactive session bootstrap."""
    log_section("Browser Login")
    session_path = BrowserSession(settings).bootstrap_login()
    print(f"\nSession saved to {session_path}. You can now run the export.")
    return 0


def run_export(settings: ExportSettings, args: argparse.Namespace, logger: logging.Logger) -> int:
    """Execute the export run and print its report."""
    orchestrator = ExportOrchestrator(settings, BrowserSession(settings))
    report = orchestrator.run()

    report_generator = ExportReport(logger)
    print("\n" + report_generator.format_console_report(report))

    if args.csv_report:
        report_generator.export_csv_summary(report, args.csv_report)

    failed = report.get('summary', {}).get('failed', 0)
    if failed > 0:
        logger.warning(f"Export completed with {failed} failed pages")
        return 1

    logger.info("Export completed successfully")
    return 0


def main() -> int:
    """Main entry point for the CLI."""
    parser = create_argument_parser()
    args = parser.parse_args()

    try:
        setup_logging(verbosity=args.verbose)
        logger = logging.getLogger('confluence_pdf_exporter.cli')

        log_section("Confluence Space PDF Exporter")
        logger.info(f"Version: {__version__}")

        config = load_configuration(args, logger)
        ConfigLoader.validate(config)

        # Reconfigure logging with config file settings
        logging_config = config.get('logging', {})
        setup_logging(
            verbosity=args.verbose,
            log_file=logging_config.get('file'),
            level=logging_config.get('level')
        )

        log_config(config)
        settings = ExportSettings.from_config(config)

        if args.login:
            return run_login(settings, logger)

        return run_export(settings, args, logger)

    except FileNotFoundError as e:
        print(f"ERROR: File not found: {e}", file=sys.stderr)
        return 2
    except ValueError as e:
        print(f"ERROR: Configuration error: {e}", file=sys.stderr)
        return 2
    except yaml.YAMLError as e:
        print(f"ERROR: Invalid YAML in configuration: {e}", file=sys.stderr)
        return 2
    except AuthenticationError as e:
        print(f"ERROR: Authentication failed: {e}", file=sys.stderr)
        print("Refresh the browser session with: python export_pdfs.py --login", file=sys.stderr)
        return 3
    except ExporterError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nExport interrupted by user. Re-run to resume.", file=sys.stderr)
        return 130
    except Exception as e:
        print(f"ERROR: Unexpected error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
