"""
Output formatting utilities for the CLI.
"""

# SPDX-License-Identifier: GPL-3.0-or-later

import json
import sys
from datetime import datetime
from typing import Any, Dict, List

from colorama import init, Fore, Style

from ..constants import NOTHING_TO_UPDATE_MESSAGE
from ..models import InstallationReport, PackageRecord

# Initialize colorama for cross-platform color support
init(autoreset=True)


class OutputFormatter:
    """Handles output formatting for the CLI."""

    def __init__(self, use_color: bool = True, json_output: bool = False, quiet: bool = False):
        """
        Initialize output formatter.

        Args:
            use_color: Whether to use ANSI colors
            json_output: Whether to output JSON
            quiet: Suppress informational messages
        """
        self.use_color = use_color
        self.json_output = json_output
        self.quiet = quiet

        self.green = Fore.GREEN if use_color else ''
        self.yellow = Fore.YELLOW if use_color else ''
        self.red = Fore.RED if use_color else ''
        self.cyan = Fore.CYAN if use_color else ''
        self.white = Fore.WHITE if use_color else ''
        self.reset = Style.RESET_ALL if use_color else ''
        self.bright = Style.BRIGHT if use_color else ''

    def success(self, message: str) -> None:
        """Print success message."""
        if not self.json_output and not self.quiet:
            print(f"{self.green}✅ {message}{self.reset}")

    def warning(self, message: str) -> None:
        """Print warning message."""
        if not self.json_output:
            print(f"{self.yellow}⚠️  {message}{self.reset}")

    def error(self, message: str) -> None:
        """Print error message."""
        if not self.json_output:
            print(f"{self.red}❌ {message}{self.reset}", file=sys.stderr)

    def info(self, message: str) -> None:
        """Print info message."""
        if not self.json_output and not self.quiet:
            print(f"{self.cyan}ℹ️  {message}{self.reset}")

    def header(self, message: str) -> None:
        """Print header message."""
        if not self.json_output and not self.quiet:
            print(f"\n{self.cyan}{self.bright}{message}{self.reset}")
            print(f"{self.cyan}{'─' * len(message)}{self.reset}")

    def format_report(self, report: InstallationReport) -> str:
        """
        Format an installation report: header, then one line per package.

        Args:
            report: Finished installation report

        Returns:
            Formatted report string
        """
        lines = [f"{self.bright}{report.header}{self.reset}"]

        if not report.outcomes:
            lines.append(NOTHING_TO_UPDATE_MESSAGE)

        for outcome in report.outcomes:
            color = self.green if outcome.succeeded else self.red
            lines.append(f"{color}{outcome.message}{self.reset}")

        for error in report.cleanup_errors:
            lines.append(f"{self.yellow}{error}{self.reset}")

        return '\n'.join(lines)

    def format_packages_table(self, records: List[PackageRecord]) -> str:
        """
        Format outdated packages as a table.

        Args:
            records: Package records

        Returns:
            Formatted table string
        """
        if not records:
            return NOTHING_TO_UPDATE_MESSAGE

        max_name = max(max(len(r.name) for r in records), 10)
        max_current = max(max(len(r.installed_display) for r in records), 12)
        max_new = max(max(len(r.newest_display) for r in records), 12)

        lines = []
        lines.append(f"  {'Package':<{max_name}}  {'Installed':<{max_current}}  {'Newest':<{max_new}}")
        lines.append(f"  {'─' * max_name}  {'─' * max_current}  {'─' * max_new}")

        for record in records:
            name = record.name
            current = record.installed_display
            new = record.newest_display
            if self.use_color:
                row = (f"  {self.white}{name:<{max_name}}{self.reset}  {current:<{max_current}}  "
                       f"{self.green}{new:<{max_new}}{self.reset}")
            else:
                row = f"  {name:<{max_name}}  {current:<{max_current}}  {new:<{max_new}}"
            lines.append(row)

        return '\n'.join(lines)

    def format_history_table(self, entries: List[Dict[str, Any]]) -> str:
        """
        Format update history entries as a table.

        Args:
            entries: List of history entry dictionaries

        Returns:
            Formatted table string
        """
        if not entries:
            return "No update history"

        lines = []
        lines.append(f"  {'Date/Time':<20}  {'Packages':<30}  {'Result':<8}  {'Duration':<10}")
        lines.append(f"  {'─' * 20}  {'─' * 30}  {'─' * 8}  {'─' * 10}")

        for entry in entries:
            timestamp = entry.get('timestamp', '')
            try:
                date_str = datetime.fromisoformat(timestamp).strftime('%Y-%m-%d %H:%M:%S')
            except (TypeError, ValueError):
                date_str = str(timestamp)[:19] or 'unknown'

            packages = entry.get('packages', [])
            if not packages:
                packages_str = '(none)'
            elif len(packages) <= 3:
                packages_str = ', '.join(packages)
            else:
                packages_str = f"{', '.join(packages[:3])} +{len(packages) - 3}"
            if len(packages_str) > 30:
                packages_str = packages_str[:27] + '...'

            if entry.get('succeeded', False):
                result_str = f"{self.green}Pass{self.reset}"
            else:
                result_str = f"{self.red}Fail{self.reset}"
            # Pad on visible width so colored cells line up
            result_str += ' ' * (8 - 4)

            duration = entry.get('duration_sec', 0)
            lines.append(f"  {date_str:<20}  {packages_str:<30}  {result_str}  {duration:.1f}s")

        return '\n'.join(lines)

    def output_json(self, data: Any) -> None:
        """
        Output data as JSON.

        Args:
            data: Data to output
        """
        print(json.dumps(data, indent=2, default=str))
