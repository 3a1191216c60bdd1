# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Mirrowel

from .cli import app

if __name__ == "__main__":
    app()
