"""
Command-line interface for Auto Package Update.
"""

# SPDX-License-Identifier: GPL-3.0-or-later

from .main import ApuCLI, create_parser, main

__all__ = ["ApuCLI", "create_parser", "main"]
