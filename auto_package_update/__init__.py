"""
Auto Package Update - Modular Package

Keeps the packages of an environment current: every few days it refreshes
package metadata and reinstalls whatever is out of date, remembering the day
of the last update.
"""

# SPDX-License-Identifier: GPL-3.0-or-later

__version__ = "1.0.0"
__author__ = "NeatCode Labs"
__email__ = "neatcodelabs@gmail.com"
