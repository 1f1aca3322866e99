import argparse
import json
import logging
import sys
from typing import Any, Dict

from comotif.api import compare_all, compare_all_long, compare_columns, merge_motifs, resolve_motifs, view_motifs_prep
from comotif.comparison import create_comparison_config
from comotif.io import write_meme
from comotif.models import Metric


def setup_logging(verbose: bool):
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    logging.getLogger("numba").setLevel(logging.WARNING)


def _parse_floats(text: str):
    """Parse a comma separated list of numbers."""
    try:
        return [float(x) for x in text.split(",") if x.strip()]
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"expected comma separated numbers, got {text!r}") from exc


def _add_comparison_options(sub: argparse.ArgumentParser) -> None:
    """Options shared by every motif-level subcommand."""
    group = sub.add_argument_group("Comparison Options")
    group.add_argument(
        "--metric",
        type=str.upper,
        choices=list(Metric.__members__),
        default="PCC",
        help="Comparison metric. (default: %(default)s)",
    )
    group.add_argument(
        "--strategy",
        choices=["sum", "a.mean", "g.mean", "median"],
        default="a.mean",
        help="How per-column scores are combined. (default: %(default)s)",
    )
    group.add_argument(
        "--min-overlap",
        type=float,
        default=6,
        help=(
            "Minimum overlap between motifs, in columns, or as a fraction of each motif's width "
            "when below 1. (default: %(default)s)"
        ),
    )
    group.add_argument("--no-rc", action="store_true", help="Do not try the reverse complement.")
    group.add_argument(
        "--min-mean-ic",
        type=float,
        default=0.25,
        help="Minimum mean information content of each aligned window. (default: %(default)s)",
    )
    group.add_argument(
        "--min-position-ic",
        type=float,
        default=0.0,
        help="Positions with lower information content are ignored. (default: %(default)s)",
    )
    group.add_argument("--normalise", action="store_true", help="Normalise scores by the aligned length.")
    group.add_argument(
        "--relative-entropy", action="store_true", help="Compute IC relative to the motif background."
    )

    technical = sub.add_argument_group("Technical Options")
    technical.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging to standard output for detailed execution tracking.",
    )
    technical.add_argument(
        "--jobs",
        type=int,
        default=1,
        help="Number of parallel jobs to run. Set to -1 to use all available CPU cores. (default: %(default)s)",
    )


def create_arg_parser() -> argparse.ArgumentParser:
    """Create and configure argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        description="comotif: compare, align and merge sequence motifs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
 Examples:
   # All-pairs comparison with Pearson correlation
   comotif compare motifs.meme --metric PCC --min-overlap 0.5

   # Comparison with log p-values
   comotif compare a.meme b.meme --metric EUCL --pvalue-table scores.tsv

   # Merge motifs into one consensus
   comotif merge a.meme b.meme --name consensus --output merged.meme

   # Compare two raw columns
   comotif column 0.1,0.2,0.3,0.4 0.4,0.3,0.2,0.1 --metric EUCL
         """,
    )

    subparsers = parser.add_subparsers(dest="mode", help="Operation mode", required=True)

    compare_parser = subparsers.add_parser("compare", help="Compare all motifs from the given files.")
    compare_parser.add_argument("motifs", nargs="+", help="MEME or PFM files.")
    compare_parser.add_argument("--matrix", action="store_true", help="Write a symmetric score matrix.")
    compare_parser.add_argument("--pvalue-table", help="TSV of distribution parameters for log p-values.")
    compare_parser.add_argument("--output", help="Output TSV path (default: standard output).")
    _add_comparison_options(compare_parser)

    merge_parser = subparsers.add_parser("merge", help="Merge all motifs from the given files into one.")
    merge_parser.add_argument("motifs", nargs="+", help="MEME or PFM files.")
    merge_parser.add_argument("--name", help="Name of the merged motif.")
    merge_parser.add_argument("--output", help="Output MEME path (default: print a JSON summary).")
    _add_comparison_options(merge_parser)

    view_parser = subparsers.add_parser("view", help="Align all motifs to the first one.")
    view_parser.add_argument("motifs", nargs="+", help="MEME or PFM files.")
    view_parser.add_argument("--output", help="Output MEME path for the aligned motifs.")
    _add_comparison_options(view_parser)

    column_parser = subparsers.add_parser("column", help="Compare two raw columns.")
    column_parser.add_argument("column1", type=_parse_floats, help="Comma separated values.")
    column_parser.add_argument("column2", type=_parse_floats, help="Comma separated values.")
    column_parser.add_argument("--background1", type=_parse_floats, default=[], help="Background of column 1.")
    column_parser.add_argument("--background2", type=_parse_floats, default=[], help="Background of column 2.")
    column_parser.add_argument("--nsites1", type=float, default=100, help="(default: %(default)s)")
    column_parser.add_argument("--nsites2", type=float, default=100, help="(default: %(default)s)")
    column_parser.add_argument(
        "--metric", type=str.upper, choices=list(Metric.__members__), default="PCC", help="(default: %(default)s)"
    )
    column_parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging.")

    return parser


def map_args_to_config_kwargs(args) -> Dict[str, Any]:
    """Map CLI arguments to comparison config keyword arguments."""
    return {
        "metric": args.metric,
        "strategy": args.strategy,
        "min_overlap": args.min_overlap,
        "try_rc": not args.no_rc,
        "min_mean_ic": args.min_mean_ic,
        "min_position_ic": args.min_position_ic,
        "normalise_scores": args.normalise,
        "relative_entropy": args.relative_entropy,
        "n_jobs": args.jobs,
    }


def _emit(text: str, output) -> None:
    """Write text to a file or standard output."""
    if output:
        with open(output, "w") as handle:
            handle.write(text)
    else:
        sys.stdout.write(text)


def run_mode(args) -> None:
    """Dispatch a parsed command line."""
    logger = logging.getLogger(__name__)

    if args.mode == "column":
        score = compare_columns(
            args.column1,
            args.column2,
            args.background1,
            args.background2,
            args.nsites1,
            args.nsites2,
            args.metric,
        )
        print(json.dumps({"metric": args.metric, "score": score}))
        return

    config = create_comparison_config(**map_args_to_config_kwargs(args))
    motifs = resolve_motifs(args.motifs)
    logger.info(f"Loaded {len(motifs)} motifs from {len(args.motifs)} file(s)")

    if args.mode == "compare":
        if args.matrix:
            table = compare_all(motifs, config=config)
            _emit(table.to_csv(sep="\t", float_format="%.6g"), args.output)
        else:
            table = compare_all_long(motifs, config=config, pvalue_table=args.pvalue_table)
            _emit(table.to_csv(sep="\t", index=False, float_format="%.6g"), args.output)

    elif args.mode == "merge":
        merged = merge_motifs(motifs, config=config, name=args.name)
        motif = merged.to_motif(alphabet=motifs[0].alphabet)
        if args.output:
            write_meme([motif], args.output)
        else:
            print(json.dumps({"name": merged.name, "width": motif.width, "nsites": merged.nsites}))

    elif args.mode == "view":
        aligned = view_motifs_prep(motifs, config=config)
        if args.output:
            write_meme(aligned.motifs, args.output)
        result = {
            "motifs": [m.name for m in aligned.motifs],
            "is_rc": [bool(x) for x in aligned.is_rc],
            "offsets": [int(x) for x in aligned.offsets],
            "width": aligned.motifs[0].width,
        }
        print(json.dumps(result))


def main_cli():
    """Main CLI entry point."""
    parser = create_arg_parser()

    if len(sys.argv) == 1:
        parser.print_help(sys.stderr)
        sys.exit(1)

    args = parser.parse_args()

    setup_logging(args.verbose)

    try:
        run_mode(args)
    except (ValueError, TypeError, OSError, IndexError) as e:
        print(f"ERROR: {args.mode} failed: {e}", file=sys.stderr)
        if args.verbose:
            import traceback

            traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    main_cli()
