# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Mirrowel

"""
Cursor Usage Viewer TUI.

Renders the monitor's latest UsageDisplayData: rolling windows, billing
period total and per-model line items. Refreshes keep running in the
background while the viewer waits for input.
"""

import asyncio
import os
import webbrowser
from datetime import datetime
from typing import Callable, List, Optional

from rich.console import Console, Group, RenderableType
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table
from rich.text import Text

from cursor_usage.core.types import UsageDisplayData
from cursor_usage.usage.monitor import RefreshStatus, UsageMonitor, UsageSnapshot


# =============================================================================
# DISPLAY CONFIGURATION - Adjust these values to customize the layout
# =============================================================================

TABLE_LABEL_WIDTH = 14
TABLE_MODEL_WIDTH = 32
TABLE_SPEND_WIDTH = 10
TABLE_REQUESTS_WIDTH = 6
TABLE_TOKENS_WIDTH = 8

# Period spend colour thresholds (dollars)
SPEND_WARN_THRESHOLD = 50.0
SPEND_ALERT_THRESHOLD = 100.0

SEPARATOR = "━" * 78

# =============================================================================


def clear_screen():
    """Clear the terminal screen."""
    os.system("cls" if os.name == "nt" else "clear")


def format_tokens(count: int) -> str:
    """Format token count for display (e.g., 125000 -> 125k)."""
    if count >= 1_000_000:
        return f"{count / 1_000_000:.1f}M"
    elif count >= 1_000:
        return f"{count / 1_000:.0f}k"
    return str(count)


def format_dollars(amount: float) -> str:
    """Format a dollar amount (e.g., 3.5 -> $3.50)."""
    return f"${amount:,.2f}"


def format_model_name(name: str) -> str:
    """Shorten long model names for readability."""
    return name.replace("-high-thinking", " (thinking)").replace("-preview", "")


def format_billing_period(start: datetime, now: Optional[datetime] = None) -> str:
    """Format the billing period range (e.g., 'Mar 1 - Mar 15') in local time."""
    now = now or datetime.now().astimezone()
    local_start = start.astimezone()
    return f"{local_start:%b} {local_start.day} - {now:%b} {now.day}"


def spend_color(amount: float) -> str:
    """Colour for the billing period spend."""
    if amount >= SPEND_ALERT_THRESHOLD:
        return "red"
    if amount >= SPEND_WARN_THRESHOLD:
        return "yellow"
    return "default"


def format_title(data: UsageDisplayData) -> Text:
    """Status line: 'Today: $x.xx | Period: $y.yy'."""
    title = Text(f"Today: {format_dollars(data.today.spend_dollars)} | Period: ")
    title.append(
        format_dollars(data.total_spend_dollars),
        style=f"bold {spend_color(data.total_spend_dollars)}",
    )
    return title


# =============================================================================
# RENDERING
# =============================================================================


def build_periods_table(data: UsageDisplayData) -> Table:
    table = Table(box=None, show_header=True, header_style="bold", padding=(0, 1))
    table.add_column("Window", style="cyan", min_width=TABLE_LABEL_WIDTH)
    table.add_column("Spend", justify="right", min_width=TABLE_SPEND_WIDTH)
    table.add_column("Req.", justify="right", min_width=TABLE_REQUESTS_WIDTH)
    table.add_column("Tokens", justify="right", min_width=TABLE_TOKENS_WIDTH)

    for period in data.periods:
        table.add_row(
            period.label,
            format_dollars(period.spend_dollars),
            str(period.requests),
            format_tokens(period.tokens),
        )
    return table


def build_line_items_table(data: UsageDisplayData) -> Table:
    table = Table(box=None, show_header=True, header_style="bold", padding=(0, 1))
    table.add_column("Model", style="cyan", min_width=TABLE_MODEL_WIDTH)
    table.add_column("Req.", justify="right", min_width=TABLE_REQUESTS_WIDTH)
    table.add_column("Cost", justify="right", min_width=TABLE_SPEND_WIDTH)
    table.add_column("Tokens", justify="right", min_width=TABLE_TOKENS_WIDTH)

    for item in data.line_items:
        table.add_row(
            format_model_name(item.model_name),
            str(item.request_count),
            format_dollars(item.cost_dollars),
            format_tokens(item.total_tokens),
        )
    return table


def build_summary(
    snapshot: UsageSnapshot, now: Optional[datetime] = None
) -> RenderableType:
    """
    Build the full summary view for a snapshot.

    Loading and error states are shown explicitly; stale data stays visible
    below a transient error.
    """
    parts: List[RenderableType] = []

    if snapshot.error:
        if snapshot.status == RefreshStatus.FATAL:
            hint = "Log in to Cursor, then restart this tool."
        else:
            hint = "Will retry on the next refresh."
        parts.append(
            Panel(
                Text.from_markup(
                    f"[bold red]Error:[/bold red] {snapshot.error}\n[dim]{hint}[/dim]"
                ),
                border_style="red",
                expand=False,
            )
        )

    data = snapshot.data
    if data is None:
        if snapshot.status == RefreshStatus.LOADING:
            parts.append(Text("Loading usage data...", style="yellow"))
        return Group(*parts)

    parts.append(format_title(data))
    parts.append(Text())
    parts.append(build_periods_table(data))
    parts.append(Text())
    parts.append(
        Text.from_markup(
            f"[bold]Billing Period ({format_billing_period(data.billing_period_start, now)}):[/bold] "
            f"{format_dollars(data.total_spend_dollars)}  "
            f"({data.total_requests} req, {format_tokens(data.total_tokens)} tokens)"
        )
    )
    if data.line_items:
        parts.append(build_line_items_table(data))
    else:
        parts.append(Text("No usage in this billing period.", style="dim"))

    return Group(*parts)


# =============================================================================
# VIEWER
# =============================================================================


class UsageViewer:
    """Main Usage Viewer TUI class."""

    def __init__(
        self,
        monitor: UsageMonitor,
        console: Optional[Console] = None,
        open_url: Callable[[str], bool] = webbrowser.open,
    ):
        """
        Initialize the viewer.

        Args:
            monitor: Refresh monitor (started and stopped by run())
            console: Optional rich console
            open_url: Opens the dashboard URL
        """
        # Use emoji_variant="text" for more consistent width calculations
        self.console = console or Console(emoji_variant="text")
        self.monitor = monitor
        self._open_url = open_url
        self.running = True

    def show_summary_screen(self) -> None:
        """Display the current snapshot and the action menu."""
        clear_screen()
        snapshot = self.monitor.snapshot()

        data_age = ""
        if snapshot.updated_at:
            data_age = f" | Updated: {datetime.fromtimestamp(snapshot.updated_at):%H:%M:%S}"

        self.console.print(SEPARATOR)
        self.console.print(
            f"[bold cyan]:chart_with_upwards_trend: Cursor Usage[/bold cyan]{data_age}"
        )
        self.console.print(SEPARATOR)
        self.console.print()
        self.console.print(build_summary(snapshot))

        self.console.print()
        self.console.print(SEPARATOR)
        self.console.print()
        if self.monitor.is_ready:
            self.console.print("   R. Refresh now")
        self.console.print("   D. Open Cursor dashboard")
        self.console.print("   Q. Quit")
        self.console.print("   [dim](Enter redraws; data refreshes every "
                           f"{self.monitor.settings.refresh_interval}s)[/dim]")
        self.console.print()
        self.console.print(SEPARATOR)

    async def handle_choice(self, choice: str) -> None:
        choice = choice.strip().lower()
        if choice in ("q", "b"):
            self.running = False
        elif choice == "r" and self.monitor.is_ready:
            with self.console.status("[bold]Refreshing usage...", spinner="dots"):
                await self.monitor.refresh()
        elif choice == "d":
            self.open_dashboard()

    def open_dashboard(self) -> None:
        self._open_url(self.monitor.settings.dashboard_url)

    # =========================================================================
    # MAIN LOOP
    # =========================================================================

    async def run(self) -> None:
        """Main viewer loop."""
        with self.console.status("[bold]Reading Cursor credentials...", spinner="dots"):
            await self.monitor.start()

        try:
            while self.running:
                self.show_summary_screen()
                # Blocking prompt in a worker thread so refreshes keep running
                choice = await asyncio.to_thread(
                    Prompt.ask, "Select option", default="", console=self.console
                )
                await self.handle_choice(choice)
        finally:
            await self.monitor.stop()


async def fetch_snapshot(monitor: UsageMonitor) -> UsageSnapshot:
    """Run a single refresh and return the resulting snapshot."""
    if await monitor.start(run_periodic=False):
        await monitor.refresh()
    try:
        return monitor.snapshot()
    finally:
        await monitor.stop()


def run_usage_viewer(monitor: Optional[UsageMonitor] = None) -> None:
    """Entry point for the usage viewer."""
    viewer = UsageViewer(monitor or UsageMonitor())
    asyncio.run(viewer.run())
