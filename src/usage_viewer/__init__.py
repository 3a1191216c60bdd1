# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Mirrowel

"""Terminal front end for the cursor_usage library."""
