"""
Command-line interface for the cron scheduler.

Meant to be called from a single crontab entry:

    * * * * * cron-scheduler tick >> ~/.cron_scheduler/logs/cron.log 2>&1

Commands:
- tick: run every job that is due now (or at --at)
- list: show registered jobs with their previous and next run
- next / previous: show when a job runs next / ran last
- validate, init, show-config: manage the configuration file
"""

import argparse
import json
import logging
import sys
from datetime import datetime
from pathlib import Path

from cronscheduler.config import SchedulerConfig
from cronscheduler.engine import DEFAULT_DATE_FORMAT
from cronscheduler.exceptions import CronSchedulerError, FilesystemError

logger = logging.getLogger(__name__)


def setup_logging(log_file: str = None, verbose: bool = False, level_name: str = "INFO"):
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else getattr(logging, level_name.upper(), logging.INFO)

    # Console handler
    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_formatter = logging.Formatter(
        '%(asctime)s [%(levelname)s] %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    console_handler.setFormatter(console_formatter)

    # Root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.addHandler(console_handler)

    # File handler
    if log_file:
        log_path = Path(log_file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path)
        file_handler.setLevel(level)
        file_formatter = logging.Formatter(
            '%(asctime)s [%(levelname)s] %(name)s: %(message)s'
        )
        file_handler.setFormatter(file_formatter)
        root_logger.addHandler(file_handler)


def _parse_reference_time(value: str) -> datetime:
    for fmt in ('%Y-%m-%d %H:%M', '%Y-%m-%d %H:%M:%S', '%Y-%m-%dT%H:%M', '%Y-%m-%dT%H:%M:%S'):
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    raise argparse.ArgumentTypeError(f"Invalid time '{value}' (expected YYYY-MM-DD HH:MM)")


def _load_config(args) -> SchedulerConfig:
    """Load the configuration, exiting with status 1 if it cannot be read or parsed."""
    try:
        return SchedulerConfig(args.config)
    except (OSError, TypeError, ValueError) as e:
        logger.error(f"Failed to load configuration: {e}")
        sys.exit(1)


def cmd_tick(args):
    """Run all due jobs once."""
    try:
        config = SchedulerConfig(args.config)
    except (OSError, TypeError, ValueError) as e:
        setup_logging(verbose=args.verbose)
        logger.error(f"Failed to load configuration: {e}")
        sys.exit(1)

    setup_logging(
        log_file=config.logging.file,
        verbose=args.verbose,
        level_name=config.logging.level
    )

    try:
        scheduler = config.build_scheduler()
        report = scheduler.tick(args.at)
    except FilesystemError as e:
        logger.error(f"Tick aborted: {e}")
        if e.report is not None and args.json:
            print(json.dumps(e.report.to_dict(), indent=2))
        sys.exit(1)
    except (CronSchedulerError, ValueError) as e:
        logger.error(f"Tick failed: {e}")
        sys.exit(1)

    if args.json:
        print(json.dumps(report.to_dict(), indent=2))
    else:
        for label, outcome in report.jobs.items():
            print(f"  {label:<30} {outcome.elapsed:8.2f}s")
        print(f"{report.count} job(s) run in {report.elapsed:.2f}s")


def cmd_list(args):
    """List configured jobs with their schedules."""
    setup_logging(verbose=args.verbose)

    try:
        config = _load_config(args)
        scheduler = config.build_scheduler()
        jobs = scheduler.get_jobs()
    except (CronSchedulerError, ValueError) as e:
        logger.error(f"Failed to list jobs: {e}")
        sys.exit(1)

    print(f"\n=== Scheduled Jobs ({len(jobs)}) ===\n")

    for label, job in jobs.items():
        print(f"  {label}")
        print(f"    {job['action']}: {job['target']}")
        print(f"    Schedule: {job['schedule']}")
        try:
            print(f"    Previous: {scheduler.previous_run(label)}")
            print(f"    Next:     {scheduler.next_run(label)}")
        except CronSchedulerError as e:
            print(f"    Invalid schedule: {e}")
        if job['overlap'] != 'skip_if_locked':
            print(f"    Overlap:  {job['overlap']}")
        if job['output']:
            print(f"    Output:   {job['output']}")
        if job['guard']:
            print("    Guarded:  yes")
        print()


def _cmd_occurrence(args, previous: bool):
    setup_logging(verbose=args.verbose)

    try:
        config = _load_config(args)
        scheduler = config.build_scheduler()
        if previous:
            print(scheduler.previous_run(args.label, args.format, args.at))
        else:
            print(scheduler.next_run(args.label, args.format, args.at))
    except (CronSchedulerError, ValueError) as e:
        logger.error(f"{e}")
        sys.exit(1)


def cmd_next(args):
    """Show the next run of a job."""
    _cmd_occurrence(args, previous=False)


def cmd_previous(args):
    """Show the previous run of a job."""
    _cmd_occurrence(args, previous=True)


def cmd_validate(args):
    """Validate the configuration file."""
    setup_logging(verbose=args.verbose)

    config = _load_config(args)
    errors = config.validate()

    if errors:
        print(f"Configuration {config.config_path} has {len(errors)} error(s):")
        for error in errors:
            print(f"  - {error}")
        sys.exit(1)

    print(f"Configuration {config.config_path} is valid ({len(config.jobs)} job(s))")


def cmd_init(args):
    """Initialize scheduler configuration."""
    setup_logging(verbose=args.verbose)

    try:
        config = _load_config(args)
        if config.config_path.exists() and not args.force:
            logger.error(f"Configuration already exists: {config.config_path} (use --force)")
            sys.exit(1)

        config.save()
        logger.info(f"Initialized scheduler configuration at: {config.config_path}")

        if config.lock_dir:
            Path(config.lock_dir).expanduser().mkdir(parents=True, exist_ok=True)
            logger.info(f"Created lock directory: {config.lock_dir}")

    except OSError as e:
        logger.error(f"Failed to initialize: {e}")
        sys.exit(1)


def cmd_show_config(args):
    """Show current configuration."""
    setup_logging(verbose=args.verbose)

    config = _load_config(args)

    print(f"\nConfiguration file: {config.config_path}")
    print(f"Lock directory: {config.lock_dir or '(locking disabled)'}")
    print(f"Output file: {config.output_file or '(output discarded)'}")
    print(f"Timeout: {config.timeout or 'none'}")
    print(f"Jobs: {len(config.jobs)} ({len(config.get_enabled_jobs())} enabled)")
    print(f"Logging level: {config.logging.level}")
    print(f"Log file: {config.logging.file}")


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Cron Scheduler - run due jobs once per invocation",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    parser.add_argument(
        '-c', '--config',
        type=str,
        help='Path to scheduler configuration file'
    )
    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Enable verbose logging'
    )

    subparsers = parser.add_subparsers(dest='command', help='Commands')

    # Tick command
    tick_parser = subparsers.add_parser('tick', help='Run all jobs that are due')
    tick_parser.add_argument(
        '--at',
        type=_parse_reference_time,
        help='Evaluate schedules at this time instead of now (YYYY-MM-DD HH:MM)'
    )
    tick_parser.add_argument('--json', action='store_true', help='Print the report as JSON')
    tick_parser.set_defaults(func=cmd_tick)

    # List command
    list_parser = subparsers.add_parser('list', help='List all jobs')
    list_parser.set_defaults(func=cmd_list)

    # Next / previous commands
    for name, func, help_text in (
        ('next', cmd_next, 'Show when a job runs next'),
        ('previous', cmd_previous, 'Show when a job last ran'),
    ):
        occurrence_parser = subparsers.add_parser(name, help=help_text)
        occurrence_parser.add_argument('label', help='Job label')
        occurrence_parser.add_argument(
            '--format', '-f',
            type=str,
            default=DEFAULT_DATE_FORMAT,
            help='strftime format (default: %%Y-%%m-%%d %%H:%%M:%%S)'
        )
        occurrence_parser.add_argument('--at', type=_parse_reference_time,
                                       help='Reference time (default: now)')
        occurrence_parser.set_defaults(func=func)

    # Validate command
    validate_parser = subparsers.add_parser('validate', help='Validate the configuration')
    validate_parser.set_defaults(func=cmd_validate)

    # Init command
    init_parser = subparsers.add_parser('init', help='Initialize scheduler configuration')
    init_parser.add_argument('--force', action='store_true', help='Overwrite an existing file')
    init_parser.set_defaults(func=cmd_init)

    # Show config command
    show_config_parser = subparsers.add_parser('show-config', help='Show configuration')
    show_config_parser.set_defaults(func=cmd_show_config)

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    args.func(args)


if __name__ == '__main__':
    main()
