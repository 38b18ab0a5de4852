"""Main entry point for the metrics log explorer."""
import argparse
import logging
import sys
import signal

from tunnelscope.config import load_config
from tunnelscope.decoder import EmptyInputError
from tunnelscope.explorer_api import ExplorerAPI
from tunnelscope.formatting import format_time_span
from tunnelscope.pipeline import DatasetLoader, parse_file
from tunnelscope.preferences import PreferencesStore
from tunnelscope.self_metrics import SelfMetrics, start_self_metrics_server


def setup_logging(log_level: str, log_format: str):
    """Setup logging configuration."""
    level = getattr(logging, log_level.upper(), logging.INFO)

    if log_format == "json":
        # No JSON formatter dependency; keep the structured text format
        fmt = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
    else:
        fmt = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

    logging.basicConfig(
        level=level,
        format=fmt,
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    # Reduce noise from some libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def print_summary(path: str) -> int:
    """Parse a log once and print its groups; returns the exit code."""
    try:
        dataset = parse_file(path)
    except EmptyInputError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"Error reading {path}: {e}", file=sys.stderr)
        return 1

    span = format_time_span(dataset.time_range.duration_seconds)
    print(f"File:    {path}")
    print(f"Samples: {dataset.total_samples}")
    print(f"Series:  {dataset.series_count}")
    print(f"Range:   {dataset.time_range.start.isoformat()} .. {dataset.time_range.end.isoformat()} ({span})")
    for group in dataset.groups.values():
        print(f"  {group.display_name:<22} {len(group.series):>6} series {group.sample_count:>9} samples")
    return 0


def main():
    """Main function."""
    parser = argparse.ArgumentParser(
        description="tunnelscope - explore cloudflared metrics logs"
    )
    parser.add_argument(
        "--config",
        "-c",
        help="Path to configuration YAML file"
    )
    parser.add_argument(
        "--file",
        "-f",
        help="Metrics log (JSON lines) to load on start"
    )
    parser.add_argument(
        "--summary",
        action="store_true",
        help="Print a summary of --file and exit instead of serving the API"
    )

    args = parser.parse_args()

    # Load configuration
    try:
        config = load_config(args.config)
    except Exception as e:
        print(f"Error loading configuration: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(config.global_.log_level, config.global_.log_format)
    logger = logging.getLogger(__name__)

    initial_file = args.file or config.explorer.initial_file

    if args.summary:
        if not initial_file:
            parser.error("--summary requires --file")
        sys.exit(print_summary(initial_file))

    self_metrics = SelfMetrics(prefix=config.self_metrics.prefix)
    if config.self_metrics.enabled:
        start_self_metrics_server(config.self_metrics, self_metrics)

    loader = DatasetLoader(self_metrics=self_metrics)
    preferences = PreferencesStore(default_view_mode=config.explorer.default_view_mode)
    preferences.on_change(lambda event: logger.debug(f"Preferences changed: {event}"))

    if initial_file:
        logger.info(f"Loading initial file: {initial_file}")
        loader.load_file(initial_file, background=True)

    api = ExplorerAPI(loader, preferences)

    def signal_handler(signum, frame):
        logger.info(f"Received signal {signum}, shutting down...")
        sys.exit(0)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    logger.info(f"Starting explorer API on {config.api.host}:{config.api.port}")
    try:
        api.run(host=config.api.host, port=config.api.port)
    except Exception as e:
        logger.error(f"Explorer API error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
