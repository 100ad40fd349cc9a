"""
Shared CLI utilities for baseqtl-prep.

Provides file status checks, the dry-run validation table, result summaries
and error panels used by the command line.
"""

from pathlib import Path
from typing import Iterable, Optional, Tuple

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .errors import PrepError

console = Console()


def format_file_size(size_bytes: int) -> str:
    """Format file size in human-readable format."""
    if size_bytes > 1_000_000_000:
        return f"{size_bytes / 1_000_000_000:.1f} GB"
    elif size_bytes > 1_000_000:
        return f"{size_bytes / 1_000_000:.1f} MB"
    return f"{size_bytes / 1_000:.1f} KB"


def check_file_status(path: str) -> tuple[str, str]:
    """Return a Rich-formatted status and the size of a file."""
    p = Path(path)
    if p.is_file():
        return "[green]✓ Found[/green]", format_file_size(p.stat().st_size)
    return "[red]✗ Not found[/red]", "-"


def create_dry_run_panel(subtitle: str = "Validating inputs without preparing the gene") -> Panel:
    """Create the dry-run mode header panel."""
    return Panel(
        f"[bold]Dry Run Mode[/bold]\n[dim]{subtitle}[/dim]",
        border_style="yellow",
    )


def create_input_validation_table(rows: Iterable[Tuple[str, str]]) -> Table:
    """Table with the status of every (label, path) input."""
    table = Table(title="Input Validation", show_header=True)
    table.add_column("File", style="cyan")
    table.add_column("Path", style="dim")
    table.add_column("Status", style="green")
    table.add_column("Size", style="dim")
    for label, path in rows:
        status, size = check_file_status(path)
        table.add_row(label, path, status, size)
    return table


def create_summary_table(prep) -> Table:
    """Summary of a prepared gene."""
    table = Table(title=f"Gene {prep.gene}", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Model", prep.model)
    table.add_row("rSNPs", str(len(prep.stan_data)))
    table.add_row("fSNPs used for phasing", str(prep.nfsnps))
    table.add_row("LD tagged", "yes" if prep.tagged else "no")
    table.add_row("Excluded SNPs", str(len(prep.ledger)))
    if prep.min_ai is not None:
        table.add_row("Minimum AI estimate", f"{prep.min_ai:.3f}")
    if prep.ase_fallback is not None:
        table.add_row("ASE not used", prep.ase_fallback)
    return table


def print_degraded(gene: str, reason: str) -> None:
    console.print(
        Panel(
            f"[yellow]No sampler inputs for {gene}:[/yellow]\n  {reason}",
            title="Gene skipped",
            border_style="yellow",
        )
    )


def handle_error(
    e: Exception,
    context: str,
    extra_hints: Optional[dict[str, str]] = None
) -> None:
    """Handle exceptions with user-friendly error messages and hints.

    Args:
        e: The exception that occurred
        context: Description of what was being done (e.g., "input checks")
        extra_hints: Additional error patterns and hints to check
    """
    error_msg = str(e)
    title = f"Error: {e.kind}" if isinstance(e, PrepError) else "Error"

    hints = {
        "invalid file names": "Check that every input path exists. Use check to list them.",
        "not found in count matrix": "Gene ids must match the first column of the counts file exactly.",
        "zero standard deviation": "Lower --maf or disable tagging with --tag-threshold no.",
        "Only one regulatory snp": "Use --tag-threshold no when testing a single SNP.",
        "reference panel": "Check the chromosome, --population and --maf against the legend file.",
        "Permission denied": "Check file permissions or try a different output location.",
    }

    if extra_hints:
        hints.update(extra_hints)

    hint = "Check input files and parameters. Use --help for usage information."
    for pattern, suggestion in hints.items():
        if pattern.lower() in error_msg.lower():
            hint = suggestion
            break

    console.print(
        Panel(
            f"[red]Error during {context}:[/red]\n"
            f"  {error_msg}\n\n"
            f"[dim]Hint: {hint}[/dim]",
            title=title,
            border_style="red",
        )
    )
    raise typer.Exit(code=1)
