"""
Main entry point for the apu command-line tool.
"""

# SPDX-License-Identifier: GPL-3.0-or-later

import argparse
import json
import logging
import sys
import threading
from typing import Any, Callable, Optional

from .. import __version__
from ..config import Config, LIST_KEYS
from ..constants import UPDATE_PROMPT
from ..exceptions import AutoPackageUpdateError
from ..models import InstallationReport, UpdateCycleResult, UpdateStatus
from ..registry import PackageRegistry, PipRegistry, describe_package
from ..evaluator import UpdateDueEvaluator
from ..state import LastUpdateStore, day_number_to_date
from ..updater import AutoPackageUpdater
from ..versions import packages_to_install
from ..utils.instance_lock import InstanceLock
from ..utils.logger import get_current_log_file, set_global_config, set_console_level
from ..utils.update_history import UpdateHistoryManager
from .output import OutputFormatter

EXIT_OK = 0
EXIT_USAGE = 1
EXIT_OUTDATED = 10
EXIT_ERROR = 20
EXIT_INSTALL_FAILED = 30
EXIT_INTERRUPTED = 130


class ApuCLI:
    """Main CLI application class."""

    def __init__(self, config_path: Optional[str] = None,
                 registry: Optional[PackageRegistry] = None):
        """Initialize CLI with configuration."""
        self.config = Config(config_path)
        self._registry = registry
        self.store = LastUpdateStore(self.config.get_state_path())
        self.update_history = UpdateHistoryManager(
            retention_days=self.config.get_history_retention_days()
        )
        self.formatter = OutputFormatter()
        self._stop_event = threading.Event()

    @property
    def registry(self) -> PackageRegistry:
        if self._registry is None:
            self._registry = PipRegistry(
                packages=self.config.get_packages(),
                index_url=self.config.get("index_url"),
                timeout=self.config.get_request_timeout()
            )
        return self._registry

    def _confirm(self, args: argparse.Namespace) -> Callable[[], bool]:
        def ask() -> bool:
            if getattr(args, 'yes', False):
                return True
            if args.json:
                return False
            try:
                response = input(f"{UPDATE_PROMPT} [y/N] ")
            except EOFError:
                return False
            return response.strip().lower() in ('y', 'yes')
        return ask

    def _render_report(self, report: InstallationReport) -> None:
        print(self.formatter.format_report(report))

    def build_updater(self, args: argparse.Namespace) -> AutoPackageUpdater:
        """Create an updater wired to this CLI's configuration and output."""
        return AutoPackageUpdater(
            self.registry,
            config=self.config.app_config,
            store=self.store,
            confirm=self._confirm(args),
            renderer=None if (args.json or args.quiet) else self._render_report,
            history=self.update_history,
            instance_lock=InstanceLock(lock_dir=self.store.path.parent)
        )

    def run(self, args: argparse.Namespace) -> int:
        """
        Run the CLI with given arguments.

        Args:
            args: Parsed command line arguments

        Returns:
            Exit code
        """
        self.formatter = OutputFormatter(
            use_color=not args.no_color,
            json_output=args.json,
            quiet=args.quiet
        )

        handlers = {
            None: self.cmd_maybe,
            'maybe': self.cmd_maybe,
            'now': self.cmd_now,
            'schedule': self.cmd_schedule,
            'status': self.cmd_status,
            'outdated': self.cmd_outdated,
            'history': self.cmd_history,
            'config': self.cmd_config,
        }
        handler = handlers.get(args.command)
        if handler is None:
            self.formatter.error(f"Unknown command: {args.command}")
            return EXIT_USAGE
        return handler(args)

    def _finish(self, result: UpdateCycleResult, args: argparse.Namespace) -> int:
        """Report a cycle result and map it to an exit code."""
        if args.json:
            self.formatter.output_json(result.to_dict())

        if result.status == UpdateStatus.BUSY:
            self.formatter.error("Another update is already in progress")
            return EXIT_USAGE
        if result.status == UpdateStatus.DECLINED:
            self.formatter.info("Update cancelled")
            return EXIT_OK
        if result.status == UpdateStatus.NOT_DUE:
            next_day = UpdateDueEvaluator(self.store, self.config.get_update_interval()).next_due_day()
            if next_day is not None:
                self.formatter.info(
                    f"Packages are up to date enough; next update due {day_number_to_date(next_day)}")
            return EXIT_OK

        if result.has_failures:
            failed = ', '.join(result.report.failed_packages)
            self.formatter.error(f"Some packages failed to install: {failed}")
            return EXIT_INSTALL_FAILED

        self.formatter.success(f"Update finished in {result.duration_sec:.1f}s")
        return EXIT_OK

    def cmd_maybe(self, args: argparse.Namespace) -> int:
        """Handle 'maybe' command - update only when due."""
        try:
            result = self.build_updater(args).update_maybe()
            return self._finish(result, args)
        except AutoPackageUpdateError as e:
            self.formatter.error(f"Update failed: {e}")
            return EXIT_ERROR

    def cmd_now(self, args: argparse.Namespace) -> int:
        """Handle 'now' command - update unconditionally."""
        try:
            result = self.build_updater(args).update_now()
            return self._finish(result, args)
        except AutoPackageUpdateError as e:
            self.formatter.error(f"Update failed: {e}")
            return EXIT_ERROR

    def cmd_schedule(self, args: argparse.Namespace) -> int:
        """Handle 'schedule' command - run the gated update every day."""
        updater = self.build_updater(args)
        try:
            timer = updater.update_at_time(args.at)
        except ValueError as e:
            self.formatter.error(str(e))
            return EXIT_USAGE

        self.formatter.info(
            f"Daily update scheduled at {timer.time_of_day:%H:%M}, next run {timer.next_run:%Y-%m-%d %H:%M}")

        try:
            if args.check_now:
                self._finish(updater.update_maybe(), args)
            while not self._stop_event.wait(3600):
                pass
        except KeyboardInterrupt:
            print()
        finally:
            updater.cancel_timers()

        self.formatter.info("Scheduler stopped")
        return EXIT_OK

    def stop(self) -> None:
        """Stop a running 'schedule' command."""
        self._stop_event.set()

    def cmd_status(self, args: argparse.Namespace) -> int:
        """Handle 'status' command - show last update and due state."""
        interval = self.config.get_update_interval()
        evaluator = UpdateDueEvaluator(self.store, interval)
        last_day = self.store.read()
        elapsed = evaluator.days_since_last_update()
        next_day = evaluator.next_due_day()

        data = {
            'last_update_day': last_day,
            'last_update_date': day_number_to_date(last_day).isoformat() if last_day else None,
            'days_since_last_update': elapsed,
            'update_interval_days': interval,
            'update_due': evaluator.is_update_due(),
            'next_update_date': day_number_to_date(next_day).isoformat() if next_day else None,
            'state_file': str(self.store.path),
            'log_file': get_current_log_file(),
        }

        if args.json:
            self.formatter.output_json(data)
            return EXIT_OK

        self.formatter.header("Update status")
        if last_day is None:
            print("  Last update:   never")
        else:
            print(f"  Last update:   {data['last_update_date']} ({elapsed} day(s) ago)")
        print(f"  Interval:      every {interval} day(s)")
        print(f"  Update due:    {'yes' if data['update_due'] else 'no'}")
        if next_day is not None:
            print(f"  Next update:   {data['next_update_date']}")
        print(f"  State file:    {data['state_file']}")
        if data['log_file']:
            print(f"  Log file:      {data['log_file']}")
        return EXIT_OK

    def cmd_outdated(self, args: argparse.Namespace) -> int:
        """Handle 'outdated' command - list stale packages without installing."""
        try:
            self.formatter.info("Refreshing package index...")
            self.registry.refresh()
            stale = packages_to_install(self.registry, excluded=self.config.get_excluded_packages())
            records = [describe_package(self.registry, p) for p in stale]
        except AutoPackageUpdateError as e:
            self.formatter.error(f"Failed to check packages: {e}")
            return EXIT_ERROR

        if args.json:
            self.formatter.output_json([
                {
                    'name': r.name,
                    'installed_version': r.installed_display,
                    'newest_version': r.newest_display
                }
                for r in records
            ])
        elif records:
            self.formatter.header(f"Outdated packages: {len(records)}")
            print(self.formatter.format_packages_table(records))
        else:
            self.formatter.success("All packages are up to date")

        return EXIT_OUTDATED if records else EXIT_OK

    def cmd_history(self, args: argparse.Namespace) -> int:
        """Handle 'history' command - display update history."""
        try:
            if args.clear:
                if not args.yes:
                    response = input("Clear all update history? [y/N] ")
                    if response.lower() not in ['y', 'yes']:
                        self.formatter.info("Clear cancelled")
                        return EXIT_OK

                self.update_history.clear()
                self.formatter.success("Update history cleared")
                return EXIT_OK

            if args.export:
                format_ = 'csv' if args.export.lower().endswith('.csv') else 'json'
                self.update_history.export(args.export, format_)
                self.formatter.success(f"History exported to {args.export}")
                return EXIT_OK

            entries = self.update_history.all()
            if args.limit:
                entries = entries[:args.limit]

            if args.json:
                self.formatter.output_json([e.to_dict() for e in entries])
            elif entries:
                self.formatter.header(f"Update History ({len(entries)} entries)")
                print(self.formatter.format_history_table([e.to_dict() for e in entries]))
            else:
                self.formatter.info("No update history recorded")
            return EXIT_OK

        except (OSError, ValueError) as e:
            self.formatter.error(f"Failed to access history: {e}")
            return EXIT_ERROR

    @staticmethod
    def _coerce_value(key: str, value: str) -> Any:
        if key in LIST_KEYS:
            return [item.strip() for item in value.split(',') if item.strip()]
        if value.lower() in ['true', 'false']:
            return value.lower() == 'true'
        if value.lower() in ['null', 'none']:
            return None
        if value.isdigit():
            return int(value)
        return value

    def cmd_config(self, args: argparse.Namespace) -> int:
        """Handle 'config' command - view/modify configuration."""
        if args.action == 'path':
            print(self.config.config_file)
            return EXIT_OK

        if args.action == 'get':
            if not args.key:
                if args.json:
                    self.formatter.output_json(self.config.get_all_settings())
                else:
                    self.formatter.header("Configuration")
                    for key, value in self.config.get_all_settings().items():
                        print(f"  {key}: {value}")
                return EXIT_OK

            if args.key not in self.config.config:
                self.formatter.error(f"Unknown config key: {args.key}")
                return EXIT_USAGE
            value = self.config.get(args.key)
            if args.json:
                self.formatter.output_json({args.key: value})
            else:
                print(json.dumps(value) if isinstance(value, (list, bool)) or value is None else value)
            return EXIT_OK

        # set
        if not args.key or args.value is None:
            self.formatter.error("Both key and value are required for 'set'")
            self.formatter.info("Available keys:")
            for key in self.config.config.keys():
                print(f"  • {key}")
            self.formatter.info("Example: apu config set update_interval_days 14")
            return EXIT_USAGE

        value = self._coerce_value(args.key, args.value)
        try:
            self.config.set(args.key, value)
        except AutoPackageUpdateError as e:
            self.formatter.error(str(e))
            return EXIT_USAGE

        self.formatter.success(f"Set {args.key} = {value}")
        return EXIT_OK


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog='apu',
        description='Auto Package Update - keep installed packages current',
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    parser.add_argument('--config', metavar='PATH', help='Alternative config file path')
    parser.add_argument('--json', action='store_true', help='Output in JSON format')
    parser.add_argument('--no-color', action='store_true', help='Disable ANSI colors')
    parser.add_argument('--quiet', action='store_true', help='Minimal output (exit status only)')
    parser.add_argument('--debug', action='store_true', help='Enable debug logging')
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    subparsers.add_parser('maybe', help='Update packages if the update interval has elapsed (default)')

    now_parser = subparsers.add_parser('now', help='Update packages now')
    now_parser.add_argument('--yes', '-y', action='store_true', help='Skip the confirmation prompt')

    schedule_parser = subparsers.add_parser('schedule', help='Check for updates every day at a given time')
    schedule_parser.add_argument('--at', required=True, metavar='HH:MM', help='Time of day to run')
    schedule_parser.add_argument('--check-now', action='store_true',
                                 help='Also run an update right away if one is due')
    schedule_parser.add_argument('--yes', '-y', action='store_true', help='Skip the confirmation prompt')

    subparsers.add_parser('status', help='Show when packages were last updated')
    subparsers.add_parser('outdated', help='List packages that would be updated')

    history_parser = subparsers.add_parser('history', help='Display update history')
    history_parser.add_argument('--limit', type=int, metavar='N', help='Show at most N entries')
    history_parser.add_argument('--clear', action='store_true', help='Clear history')
    history_parser.add_argument('--export', metavar='FILE', help='Export history to file (json/csv)')
    history_parser.add_argument('--yes', '-y', action='store_true', help='Skip confirmation for clear')

    config_parser = subparsers.add_parser(
        'config',
        help='View/modify configuration',
        description='Manage configuration settings. Examples:\n'
        '  apu config get                          # Show all settings\n'
        '  apu config get update_interval_days     # Show specific setting\n'
        '  apu config set update_interval_days 14  # Set a value\n'
        '  apu config set excluded_packages pip,setuptools\n'
        '  apu config path                         # Show config file location',
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    config_parser.add_argument('action', choices=['get', 'set', 'path'], help='Config action')
    config_parser.add_argument('key', nargs='?', help='Config key (e.g. update_interval_days)')
    config_parser.add_argument('value', nargs='?', help='Config value to set')

    return parser


def configure_logging(cli: ApuCLI, args: argparse.Namespace) -> None:
    """Apply config and command-line logging settings."""
    settings = cli.config.get_all_settings()
    if args.debug:
        settings['debug_mode'] = True
    set_global_config(settings)

    if args.debug:
        set_console_level(logging.DEBUG)
    elif args.quiet:
        set_console_level(logging.ERROR)
    else:
        set_console_level(logging.WARNING)


def main() -> None:
    """Main entry point for the CLI."""
    parser = create_parser()
    args = parser.parse_args()

    try:
        cli = ApuCLI(args.config)
        configure_logging(cli, args)
        exit_code = cli.run(args)
        sys.exit(exit_code)
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        sys.exit(EXIT_INTERRUPTED)
    except Exception as e:
        print(f"Fatal error: {str(e)}", file=sys.stderr)
        if args.debug:
            import traceback
            traceback.print_exc()
        sys.exit(EXIT_ERROR)


if __name__ == '__main__':
    main()
