"""
Console reporting for the command-line tool.
"""

from typing import Optional

from rich.console import Console
from rich.markup import escape

from imgliex import __version__


BANNER = r"""
 ___ __  __  ____ _     ___ _____ __  __
|_ _|  \/  |/ ___| |   |_ _| ____|\ \/ /
 | || |\/| | |  _| |    | ||  _|   \  /
 | || |  | | |_| | |___ | || |___  /  \
|___|_|  |_|\____|_____|___|_____|/_/\_\
"""


class ConsoleReporter:
    """Renders progress, per-chapter results and the run summary."""

    def __init__(self, console: Optional[Console] = None):
        # rich serializes writes internally, so worker threads may report directly
        self.console = console or Console(highlight=False)

    def header(self) -> None:
        self.console.print(BANNER, style="bold cyan")
        self.console.print("High-Performance Manga Image Link Extractor", style="yellow")
        self.console.print(f"Version {__version__}\n", style="dim")

    def separator(self, symbol: str = "-", length: int = 60) -> None:
        self.console.print(symbol * length, style="cyan")

    def progress(self, message: str, style: str = "blue") -> None:
        self.console.print(f"[{style}]> [bold]{escape(message)}[/bold][/{style}]")

    def success(self, message: str) -> None:
        self.console.print(f"[green][SUCCESS] [bold]{escape(message)}[/bold][/green]")

    def warning(self, message: str) -> None:
        self.console.print(f"[yellow][WARNING] [bold]{escape(message)}[/bold][/yellow]")

    def error(self, message: str) -> None:
        self.console.print(f"[red][ERROR] [bold]{escape(message)}[/bold][/red]")

    def stat(self, label: str, value: str, unit: str = "") -> None:
        self.console.print(
            f"[cyan]   * [/cyan]{escape(label):<20}[bold yellow]{escape(value):>10}[/bold yellow] [dim]{unit}[/dim]"
        )

    def chapter_outcome(self, outcome) -> None:
        """Print one chapter's terminal result as soon as it is known."""
        number = f"{outcome.chapter_number:>3}"
        if outcome.is_processed:
            self.console.print(
                f"[green][OK][/green] Chapter [yellow]{number}[/yellow] -> "
                f"[cyan]{outcome.count}[/cyan] [dim]images[/dim]"
            )
        elif outcome.is_skipped:
            self.console.print(
                f"[yellow][SKIP][/yellow] Chapter [yellow]{number}[/yellow] "
                f"[dim]-> already processed ({outcome.count} images)[/dim]"
            )
        else:
            self.console.print(
                f"[red][FAIL][/red] Chapter [yellow]{number}[/yellow] "
                f"[red]-> {escape(outcome.reason)}[/red]"
            )

    def chapter_not_found(self, chapter_number: int) -> None:
        self.warning(f"Chapter {chapter_number} not found in input file")

    def run_started(self, start: int, end: int, workers: int, output_folder: str) -> None:
        self.progress("Starting processing", style="magenta")
        self.stat("Chapter range", f"{start} - {end}")
        self.stat("Threads", str(workers))
        self.stat("Output folder", output_folder)
        self.separator()

    def summary(self, statistics, output_folder: str) -> None:
        """Print the final statistics block."""
        self.console.print()
        self.separator("=")
        self.success("Processing Complete!")
        self.separator()

        self.stat("Processed", str(statistics.processed), "chapters")
        self.stat("Skipped", str(statistics.skipped), "chapters")
        self.stat("Errors", str(statistics.errored), "chapters")
        if statistics.not_found:
            self.stat("Not found", str(len(statistics.not_found)), "chapters")
        self.stat("Total time", f"{statistics.elapsed_seconds:.3f}", "seconds")

        average = statistics.average_seconds_per_processed
        if average is not None:
            self.stat("Avg per chapter", f"{average:.3f}", "sec/chapter")

        self.separator()
        self.console.print(f"[cyan]Results saved in: [bold yellow]{escape(output_folder)}[/bold yellow][/cyan]\n")
        self.separator("=")
