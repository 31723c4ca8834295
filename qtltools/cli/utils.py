import argparse
from typing import List, Optional

STEP_CHOICES = (
    'drop_similar',
    'ripple',
    'est_map',
    'place',
    'scan',
)


def normalize_steps(steps: Optional[List[str]]) -> List[str]:
    """Helper to normalize step choices (comma splitting and deduplication)"""
    if not steps:
        return list(STEP_CHOICES)
    normalized = []
    for item in steps:
        for part in str(item).split(','):
            part = part.strip().lower().replace('-', '_')
            if not part:
                continue
            if part not in STEP_CHOICES:
                raise ValueError(f"Invalid step choice: {part}")
            if part not in normalized:
                normalized.append(part)
    return normalized if normalized else list(STEP_CHOICES)


def build_parser() -> argparse.ArgumentParser:
    """Argument parser for the map refinement pipeline"""
    parser = argparse.ArgumentParser(
        description="Genetic map cleanup and marker placement using qtltools",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )

    # Required arguments
    parser.add_argument("--cross", "-c", required=True,
                       help="Cross file in R/qtl CSV layout (names, chromosome and position rows)")
    parser.add_argument("--cross-type", "-t", default='f2',
                       choices=['bc', 'dh', 'riself', 'risib', 'f2'],
                       help="Cross type")

    # Optional inputs
    parser.add_argument("--map", "-m", default=None,
                       help="Genetic map file (CSV/TSV) overriding positions in the cross file")
    parser.add_argument("--phenotype", "-p", default=None,
                       help="Phenotype file (CSV/TSV with ID column) overriding cross phenotypes")
    parser.add_argument("--markers", default=None,
                       help="Numeric genotype matrix of new markers to place (ID column + markers)")
    parser.add_argument("--genes", default=None,
                       help="Gene table (chr,start,end,gene_id) for candidate-gene lookup")
    parser.add_argument("--outputdir", "-o", default="./map_refinement_results",
                       help="Output directory")
    parser.add_argument("--genotype-codes", default="A,H,B",
                       help="Comma-separated codes for AA, AB and BB genotypes")
    parser.add_argument("--traits", default=None,
                       help="Comma-separated traits to scan")
    parser.add_argument("--steps", nargs='+', default=list(STEP_CHOICES),
                       help=f"Pipeline steps to run ({', '.join(STEP_CHOICES)})")

    # Model
    parser.add_argument("--error-prob", type=float, default=1e-4,
                       help="Genotyping error probability")
    parser.add_argument("--map-function", default='haldane',
                       choices=['haldane', 'kosambi', 'morgan'],
                       help="Map function")

    # Refinement
    parser.add_argument("--rf-threshold", type=float, default=0.01,
                       help="Recombination fraction below which adjacent markers are merged")
    parser.add_argument("--window", type=int, default=3,
                       help="Ripple window size")
    parser.add_argument("--ripple-method", default='likelihood', choices=['likelihood', 'length'],
                       help="Ripple criterion")
    parser.add_argument("--max-passes", type=int, default=10,
                       help="Maximum ripple passes per chromosome")

    # Placement
    parser.add_argument("--initial-geno-density", type=float, default=20.0,
                       help="Marker spacing (cM) of the coarse placement scan")
    parser.add_argument("--final-step", type=float, default=0.1,
                       help="Pseudomarker spacing (cM) of the fine placement scan")
    parser.add_argument("--drop", type=float, default=1.5,
                       help="LOD drop for support intervals")
    parser.add_argument("--no-ci", action='store_true',
                       help="Skip confidence intervals for placed markers")
    parser.add_argument("--min-gap", type=float, default=10.0,
                       help="Smallest map interval (cM) reported as a gap")
    parser.add_argument("--min-lod", type=float, default=3.0,
                       help="Minimum LOD for a gap-filling candidate")

    # Scan
    parser.add_argument("--scan-step", type=float, default=1.0,
                       help="Pseudomarker spacing (cM) of the trait scan")
    parser.add_argument("--threshold", type=float, default=3.0,
                       help="LOD threshold for the QTL interval table")

    parser.add_argument("--seed", type=int, default=None,
                       help="Random seed")
    parser.add_argument("--quiet", action='store_true',
                       help="Suppress progress output")
    return parser


def parse_args(argv: Optional[List[str]] = None):
    """Parse command line arguments for the map refinement pipeline"""
    return build_parser().parse_args(argv)
