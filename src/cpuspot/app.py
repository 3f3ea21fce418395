"""cpuspot - Textual report viewer."""

from rich.text import Text
from textual.app import App, ComposeResult
from textual.containers import Container, Horizontal
from textual.widgets import DataTable, Footer, Static

from cpuspot.fingerprint import FRAME_SEPARATOR
from cpuspot.formatting import SKIPPED
from cpuspot.models import Unchanged
from cpuspot.report import Report, ThreadReport


def format_time(microseconds: int) -> str:
    """Format a CPU time in microseconds as a human-readable string."""
    if microseconds < 1000:
        return f"{microseconds}us"
    if microseconds < 1_000_000:
        return f"{microseconds / 1000:.1f}ms"
    return f"{microseconds / 1_000_000:.2f}s"


def describe_thread(thread: ThreadReport) -> str:
    """Render a thread's common stack and diff trace for the detail pane."""
    summary = thread.summary
    lines = [
        f"Thread {summary.thread_id}",
        f"Kernel: {format_time(summary.kernel_time)} User: {format_time(summary.user_time)}",
        "",
        "Common stack:",
    ]
    lines.extend(summary.common_stack or ["(none)"])
    lines.append("")
    lines.append("Other stacks:")
    for entry in thread.trace:
        if isinstance(entry, Unchanged):
            lines.append(SKIPPED)
        else:
            lines.append("")
            lines.extend(entry)
    return "\n".join(lines)


class StackDetail(Static):
    """Detail pane for the highlighted stack or thread."""

    DEFAULT_CSS = """
    StackDetail {
        width: 1fr;
        height: 1fr;
        padding: 0 1;
        border: solid $secondary;
        overflow-y: auto;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize StackDetail."""
        super().__init__(*args, **kwargs)
        self._text = ""

    @property
    def shown_text(self) -> str:
        """Get the text currently shown."""
        return self._text

    def show(self, text: str) -> None:
        """Show plain text, without markup interpretation."""
        self._text = text
        self.update(Text(text))


class StackTable(Container):
    """Ranked, de-duplicated stacks by attributed cost."""

    DEFAULT_CSS = """
    StackTable {
        height: 1fr;
        border: solid $primary;
    }
    """

    def __init__(self, report: Report, *args, **kwargs) -> None:
        """Initialize StackTable."""
        super().__init__(*args, **kwargs)
        self._report = report
        self._stacks: dict[str, tuple[int, str]] = {}

    def compose(self) -> ComposeResult:
        """Compose the stack table."""
        yield DataTable(id="stack-table")

    def on_mount(self) -> None:
        """Fill the data table when mounted."""
        table = self.query_one("#stack-table", DataTable)
        table.cursor_type = "row"

        table.add_column("COST", key="cost", width=10)
        table.add_column("DEPTH", key="depth", width=6)
        table.add_column("Innermost frame", key="frame")

        for i, group in enumerate(self._report.cost_groups):
            for j, stack in enumerate(group.stacks):
                row_key = f"{i}-{j}"
                frames = stack.split(FRAME_SEPARATOR)
                self._stacks[row_key] = (group.cost, stack)
                table.add_row(
                    format_time(group.cost),
                    str(len(frames)),
                    frames[-1],
                    key=row_key,
                )

    def describe(self, row_key: str) -> str | None:
        """Get the detail text for a row."""
        entry = self._stacks.get(row_key)
        if entry is None:
            return None
        cost, stack = entry
        return f"{stack}\n===> Cost ({format_time(cost)})"


class ThreadTable(Container):
    """Threads sorted by total CPU time."""

    DEFAULT_CSS = """
    ThreadTable {
        height: 1fr;
        border: solid $primary;
    }
    """

    def __init__(self, report: Report, *args, **kwargs) -> None:
        """Initialize ThreadTable."""
        super().__init__(*args, **kwargs)
        self._threads = {str(t.summary.thread_id): t for t in report.threads}

    def compose(self) -> ComposeResult:
        """Compose the thread table."""
        yield DataTable(id="thread-table")

    def on_mount(self) -> None:
        """Fill the data table when mounted."""
        table = self.query_one("#thread-table", DataTable)
        table.cursor_type = "row"

        table.add_column("TID", key="tid", width=10)
        table.add_column("KERNEL", key="kernel", width=10)
        table.add_column("USER", key="user", width=10)
        table.add_column("TOTAL", key="total", width=10)
        table.add_column("Common leaf", key="leaf")

        for row_key, thread in self._threads.items():
            summary = thread.summary
            table.add_row(
                row_key,
                format_time(summary.kernel_time),
                format_time(summary.user_time),
                format_time(summary.total_time),
                summary.common_stack[-1] if summary.common_stack else "",
                key=row_key,
            )

    def describe(self, row_key: str) -> str | None:
        """Get the detail text for a row."""
        thread = self._threads.get(row_key)
        return describe_thread(thread) if thread is not None else None


class ReportApp(App):
    """Interactive viewer for a cpuspot report."""

    TITLE = "cpuspot"
    SUB_TITLE = "CPU Hotspots"

    CSS = """
    Screen {
        layout: horizontal;
    }

    #tables {
        width: 2fr;
        layout: vertical;
    }

    #detail {
        width: 1fr;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("t", "toggle_focus", "Switch table"),
    ]

    def __init__(self, report: Report) -> None:
        """Initialize the ReportApp."""
        super().__init__()
        self._report = report

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield Horizontal(
            Container(
                StackTable(self._report, id="stacks"),
                ThreadTable(self._report, id="threads"),
                id="tables",
            ),
            StackDetail("", id="detail"),
        )
        yield Footer()

    def on_mount(self) -> None:
        """Focus the stack table and show a warning for clamped deltas."""
        self.query_one("#stack-table", DataTable).focus()
        if self._report.anomalies:
            self.notify(
                f"{self._report.anomalies} negative CPU deltas clamped to zero",
                severity="warning",
            )

    def on_data_table_row_highlighted(self, event: DataTable.RowHighlighted) -> None:
        """Show details for the highlighted row."""
        row_key = event.row_key.value
        if row_key is None:
            return
        if event.data_table.id == "stack-table":
            text = self.query_one(StackTable).describe(row_key)
        else:
            text = self.query_one(ThreadTable).describe(row_key)
        if text is not None:
            self.query_one("#detail", StackDetail).show(text)

    def action_toggle_focus(self) -> None:
        """Move focus between the stack and thread tables."""
        stack_table = self.query_one("#stack-table", DataTable)
        thread_table = self.query_one("#thread-table", DataTable)
        if stack_table.has_focus:
            thread_table.focus()
        else:
            stack_table.focus()
