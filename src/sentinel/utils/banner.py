import pyfiglet
from rich.align import Align
from rich.console import Console
from rich.panel import Panel
from rich.text import Text


def render_day_complete(completion_rate: int, avg_focus_score: int, emailed: bool = False) -> Panel:
    """Builds the panel shown once every block of the day is verified."""
    font = pyfiglet.Figlet(font="small")
    art_text = font.renderText("DAY DONE")

    message = f"\n{completion_rate}% complete | average focus {avg_focus_score}/10"
    if emailed:
        message += "\nCheck your inbox for the daily report."
    subtext = Text(message, justify="center", style="bold yellow")
    full_text = Text(art_text, style="bold green") + subtext
    return Panel(Align.center(full_text), border_style="green")


def display_day_complete(
    console: Console, completion_rate: int, avg_focus_score: int, emailed: bool = False
) -> None:
    console.print(render_day_complete(completion_rate, avg_focus_score, emailed))
