# SPDX-License-Identifier: GPL-2.0-only
# Copyright (C) 2025 Gilderchuck

import sys

from .cli import main

if __name__ == "__main__":
    sys.exit(main())
