"""Command line consumer for linetest."""

import logging
from pathlib import Path

import click

from linetest.evaluation import MeasurementResult, PersistenceError
from linetest.fake_probe import FakeProbe
from linetest.logging_config import LoggingConfig, configure_logging
from linetest.models import MeasurementConfig
from linetest.probe import ProbeSetupError
from linetest.probe_ping import PingProbe
from linetest.scheduler import MeasurementScheduler

logger = logging.getLogger(__name__)


def _echo_summary(result: MeasurementResult):
    click.echo("--")
    for line in result.summary().lines():
        click.echo(line)


def _save(result: MeasurementResult, path: Path | None):
    if path is None:
        return
    try:
        result.save(path)
    except PersistenceError as e:
        # Keep measuring, the next save rewrites the whole session
        logger.error("%s", e)


@click.command()
@click.option("--target", default=None, help="Host to ping (default: 8.8.8.8).")
@click.option(
    "--ping-interval",
    type=click.FloatRange(min=0),
    default=None,
    help="Seconds between pings (default: 7).",
)
@click.option(
    "--download-url",
    "download_urls",
    multiple=True,
    help="Supply your own download URL. Repeat for several URLs.",
)
@click.option(
    "--duration",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help="Stop after this many seconds (default: run until interrupted).",
)
@click.option(
    "--log",
    "log_path",
    type=click.Path(dir_okay=False, writable=True, path_type=Path),
    default=None,
    help="Session log file (default: timestamped file in the data directory).",
)
@click.option("--no-log", is_flag=True, help="Do not write a session log.")
@click.option("--fake-probe", is_flag=True, help="Use simulated latency instead of ping.")
@click.option("--once", is_flag=True, help="Run a single measurement cycle and exit.")
@click.option(
    "--load",
    "load_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Print the summary of a saved session and exit.",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Logging level (default: LINETEST_LOG_LEVEL or WARNING).",
)
def cli(
    target,
    ping_interval,
    download_urls,
    duration,
    log_path,
    no_log,
    fake_probe,
    once,
    load_path,
    log_level,
):
    """Continuously measure latency and download speed."""
    if log_level is not None:
        configure_logging(LoggingConfig.from_level_name(log_level))
    else:
        configure_logging(LoggingConfig.from_env())

    if load_path is not None:
        result = MeasurementResult()
        try:
            result.load(load_path)
        except PersistenceError as e:
            raise click.ClickException(str(e)) from e
        for datapoint in result:
            click.echo(str(datapoint))
        _echo_summary(result)
        return

    config = MeasurementConfig()
    changes = {}
    if target:
        changes["ping_targets"] = (target,)
    if ping_interval is not None:
        changes["probe_interval"] = ping_interval
    if download_urls:
        changes["download_urls"] = download_urls
    if duration is not None:
        changes["total_duration"] = duration
    if no_log:
        changes["log_path"] = None
    elif log_path is not None:
        changes["log_path"] = log_path
    config = config.replace(**changes)

    scheduler = MeasurementScheduler(probe_factory=FakeProbe if fake_probe else PingProbe)

    if once:
        try:
            result = scheduler.run_once(config)
        except ProbeSetupError as e:
            raise click.ClickException(str(e)) from e
        for datapoint in result:
            click.echo(str(datapoint))
        _save(result, config.log_path)
        _echo_summary(result)
        return

    try:
        stream = scheduler.start(config)
    except ProbeSetupError as e:
        raise click.ClickException(str(e)) from e

    if config.log_path is not None:
        click.echo(f"Logging to {config.log_path}")

    result = MeasurementResult()
    try:
        with stream:
            for datapoint in stream:
                click.echo(str(datapoint))
                result.append(datapoint)
                _save(result, config.log_path)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        # Keep what the scheduler produced before it noticed the close
        pending = stream.drain()
        if pending:
            result.extend(pending)
            _save(result, config.log_path)

    if stream.error is not None:
        click.echo(f"Measurement stopped: {stream.error}", err=True)
    _echo_summary(result)


def main():
    cli()


if __name__ == "__main__":
    main()
