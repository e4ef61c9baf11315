"""
Allow running as ``python -m auto_package_update``.
"""

# SPDX-License-Identifier: GPL-3.0-or-later

from .cli.main import main

if __name__ == "__main__":
    main()
