"""CLI interface for the MQA identifier.

Scans FLAC files and directories for the MQA watermark, prints one status
line per file and, on detection, tags the file (unless ``--dry-run``).
"""

import logging
from pathlib import Path

import click
from dotenv import load_dotenv

from mqa_identifier import __version__

# Load environment variables from .env file
load_dotenv(override=True)

logger = logging.getLogger(__name__)

USAGE_HINT = (
    "HINT: To use the tool provide files and/or directories as program arguments.\n"
    "      Use -v to enable verbose logging and write a scan report.\n"
    "      Use --dry-run to scan without modifying files.\n"
)


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.argument("paths", nargs=-1, type=click.Path(path_type=Path))
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Log progress to the console and write a failure report at the end.",
)
@click.option(
    "--dry-run",
    is_flag=True,
    help="Detect and report only; never modify any file.",
)
@click.option(
    "--workers",
    type=click.IntRange(min=1),
    default=None,
    help="Cap on parallel workers (default: CPU count, at most 16).",
)
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Where -v writes the failure report (default: mqa_identifier.log).",
)
@click.version_option(__version__, prog_name="mqa-identifier")
def main(
    paths: tuple[Path, ...],
    verbose: bool,
    dry_run: bool,
    workers: int | None,
    log_file: Path | None,
) -> None:
    """Identify MQA-encoded FLAC files.

    PATHS are FLAC files and/or directories (scanned recursively). The exit
    code is 0 whenever the batch completes, even if some files failed.

    \b
    Examples:
      mqa-identifier ~/Music
      mqa-identifier -v --dry-run album/ single.flac
      mqa-identifier --workers 4 /mnt/library
    """
    if not paths:
        click.echo(USAGE_HINT)
        return

    from mqa_identifier import settings
    from mqa_identifier.cli.logging import configure_cli_logging
    from mqa_identifier.cli.rich_output import make_console
    from mqa_identifier.detection import Detector, FlacSampleSource
    from mqa_identifier.scan import ScanOrchestrator, default_worker_count, write_report

    log_path = configure_cli_logging("scan", verbose=verbose)
    logger.debug("Logging to %s", log_path)

    detector = Detector(
        FlacSampleSource(block_size=settings.get_block_size()),
        window_seconds=settings.get_window_seconds(),
    )
    orchestrator = ScanOrchestrator(
        detector,
        max_workers=default_worker_count(workers),
        dry_run=dry_run,
        extensions=settings.get_extensions(),
        console=make_console(),
    )
    summary = orchestrator.run(paths)

    if verbose and summary.ledger:
        report_file = log_file or settings.get_report_file()
        try:
            write_report(summary.ledger, report_file)
        except OSError as e:
            logger.warning("Could not write report to %s: %s", report_file, e)
            click.echo("Failed to open log file for writing.", err=True)
        else:
            click.echo(f"Log written to {report_file}")


__all__ = ["main"]
