from pathlib import Path
from typing import List, Optional, Union
from typing_extensions import Annotated

import typer

# Local Imports
from baseqtl_prep.cli_utils import (
    console,
    create_dry_run_panel,
    create_input_validation_table,
    create_summary_table,
    handle_error,
    print_degraded,
)
from baseqtl_prep.config import NO_TAGGING, PrepConfig, config_from_dict, load_config, setup_logging
from baseqtl_prep.errors import PrepError
from baseqtl_prep.prep import describe_inputs, prepare_gene, validate_config
from baseqtl_prep.result import Degraded, Success

# Create a Typer app instance with a brief description.
app: typer.Typer = typer.Typer(
    help="baseqtl-prep: BaseQTL inputs without rSNP genotypes.",
    pretty_exceptions_short=False,
)

# Hints for option errors
CONFIG_HINTS = {
    "Missing required options": "Set them in the YAML file given with --config or on the command line.",
    "Not valid model selection": "Use --model NB, NB-ASE or both.",
}


def parse_snps(value: str) -> Union[int, List[str]]:
    """Window flank in bp, or comma separated pos:ref:alt ids."""
    value = value.strip()
    if value.isdigit():
        return int(value)
    return [s.strip() for s in value.split(",") if s.strip()]


def parse_tag_threshold(value: str) -> Union[float, str]:
    if value == NO_TAGGING:
        return NO_TAGGING
    try:
        return float(value)
    except ValueError:
        raise typer.BadParameter(f"expected a number in [0, 1] or '{NO_TAGGING}', got {value!r}")


def parse_ex_fsnp(value: str) -> Union[float, List[str]]:
    """Fisher p-value cut-off, or comma separated fSNP ids to exclude."""
    try:
        return float(value)
    except ValueError:
        return [s.strip() for s in value.split(",") if s.strip()]


def _resolve_config(config_file: Optional[Path], options: dict) -> PrepConfig:
    if config_file is not None:
        return load_config(config_file, **options)
    return config_from_dict({k: v for k, v in options.items() if v is not None})


@app.command()
def prepare(
    gene: Annotated[Optional[str], typer.Option("--gene", "-g", help="Gene id as in the counts file")] = None,
    chrom: Annotated[Optional[str], typer.Option("--chrom", "--chr", help="Chromosome of the gene")] = None,
    counts_file: Annotated[Optional[str], typer.Option("--counts", help="Total counts per gene")] = None,
    e_snps: Annotated[Optional[str], typer.Option("--e-snps", help="Exonic SNPs per gene")] = None,
    gene_coord: Annotated[Optional[str], typer.Option("--gene-coord", help="Gene coordinates")] = None,
    vcf: Annotated[Optional[str], typer.Option("--vcf", help="VCF with phased GT and AS")] = None,
    le_file: Annotated[Optional[str], typer.Option("--legend", help="Reference panel legend")] = None,
    h_file: Annotated[Optional[str], typer.Option("--haps", help="Reference panel haplotypes")] = None,
    config_file: Annotated[
        Optional[Path],
        typer.Option("--config", "-c", help="YAML file with options; command line values take precedence"),
    ] = None,
    snps: Annotated[
        Optional[str],
        typer.Option("--snps", help="Cis-window flank in bp, or comma separated pos:ref:alt ids"),
    ] = None,
    covariates: Annotated[Optional[str], typer.Option("--covariates", help="Covariates matrix")] = None,
    additional_cov: Annotated[
        Optional[str], typer.Option("--additional-cov", help="Gene independent covariates by sample")
    ] = None,
    u_esnps: Annotated[Optional[str], typer.Option("--u-esnps", help="Unique exonic SNPs per gene")] = None,
    sample_file: Annotated[Optional[str], typer.Option("--sample-file", help="Reference panel samples")] = None,
    population: Annotated[Optional[str], typer.Option("--population", "--pop", help="EUR, AFR, AMR, EAS, SAS or ALL")] = None,
    maf: Annotated[Optional[float], typer.Option("--maf", help="Minor allele frequency cut-off")] = None,
    min_ase: Annotated[Optional[int], typer.Option("--min-ase", help="Minimum ASE reads per individual")] = None,
    min_ase_snp: Annotated[Optional[int], typer.Option("--min-ase-snp", help="Minimum ASE reads per fSNP")] = None,
    min_ase_n: Annotated[Optional[int], typer.Option("--min-ase-n", help="Minimum informative individuals")] = None,
    tag_threshold: Annotated[
        Optional[str], typer.Option("--tag-threshold", help="r2 for LD tagging, or 'no'")
    ] = None,
    info: Annotated[Optional[float], typer.Option("--info", help="Info score cut-off")] = None,
    out: Annotated[Optional[str], typer.Option("--out", "-o", help="Directory for diagnostics")] = None,
    model: Annotated[Optional[str], typer.Option("--model", help="both, NB-ASE or NB")] = None,
    prefix: Annotated[Optional[str], typer.Option("--prefix", help="Prefix for diagnostic files")] = None,
    ex_fsnp: Annotated[
        Optional[str], typer.Option("--ex-fsnp", help="Fisher p-value cut-off, or fSNP ids to exclude")
    ] = None,
    prob: Annotated[Optional[float], typer.Option("--prob", help="Posterior mass for intervals")] = None,
    ai_estimate: Annotated[Optional[str], typer.Option("--ai-estimate", help="Reference bias estimates")] = None,
    pretotal_reads: Annotated[
        Optional[int], typer.Option("--pretotal-reads", help="Minimum reads behind a bias estimate")
    ] = None,
    save_input: Annotated[
        Optional[bool], typer.Option("--save-input/--no-save-input", help="Save sampler inputs")
    ] = None,
    threads: Annotated[Optional[int], typer.Option("--threads", "-t", help="Worker processes")] = None,
    verbose: Annotated[int, typer.Option("--verbose", "-v", count=True, help="Increase verbosity")] = 0,
    log_file: Annotated[Optional[str], typer.Option("--log-file", help="Also write logs here")] = None,
) -> None:
    """
    Prepare sampler inputs for one gene.

    Options can be given in a YAML file with --config; field names match the
    long options with underscores (counts_file, le_file, h_file, ...).
    """
    setup_logging(verbose, log_file)

    options = {
        "gene": gene, "chrom": chrom, "counts_file": counts_file, "e_snps": e_snps,
        "gene_coord": gene_coord, "vcf": vcf, "le_file": le_file, "h_file": h_file,
        "snps": parse_snps(snps) if snps is not None else None,
        "covariates": covariates, "additional_cov": additional_cov, "u_esnps": u_esnps,
        "sample_file": sample_file, "population": population, "maf": maf,
        "min_ase": min_ase, "min_ase_snp": min_ase_snp, "min_ase_n": min_ase_n,
        "tag_threshold": parse_tag_threshold(tag_threshold) if tag_threshold is not None else None,
        "info": info, "out": out, "model": model, "prefix": prefix,
        "ex_fsnp": parse_ex_fsnp(ex_fsnp) if ex_fsnp is not None else None,
        "prob": prob, "ai_estimate": ai_estimate, "pretotal_reads": pretotal_reads,
        "save_input": save_input, "threads": threads,
    }

    try:
        config = _resolve_config(config_file, options)
        outcome = prepare_gene(config)
    except (PrepError, OSError, ValueError) as e:
        handle_error(e, f"preparation of {gene or 'gene'}", extra_hints=CONFIG_HINTS)
        return

    if isinstance(outcome, Degraded):
        print_degraded(config.gene, outcome.reason)
    elif isinstance(outcome, Success):
        console.print(create_summary_table(outcome.payload))


@app.command()
def check(
    config_file: Annotated[Path, typer.Argument(help="YAML file with the gene options")],
    verbose: Annotated[int, typer.Option("--verbose", "-v", count=True, help="Increase verbosity")] = 0,
) -> None:
    """
    Check options and input files without reading any gene data.
    """
    setup_logging(verbose)
    console.print(create_dry_run_panel())

    try:
        config = load_config(config_file)
        console.print(create_input_validation_table(describe_inputs(config)))
        validate_config(config)
    except (PrepError, OSError) as e:
        handle_error(e, "input checks", extra_hints=CONFIG_HINTS)
        return

    console.print(f"[green]✓ Options for {config.gene} are valid[/green]")


def main() -> None:
    """
    Entry point for the baseqtl-prep CLI.

    **Usage Examples:**
      - Prepare one gene from a YAML file:
        ```
        baseqtl-prep prepare --config gene.yaml
        ```
      - Check the inputs first:
        ```
        baseqtl-prep check gene.yaml
        ```
    """
    app()


if __name__ == "__main__":
    main()
