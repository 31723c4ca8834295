#!/usr/bin/env python3
"""
Genetic map refinement and marker placement script using qtltools
"""
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from qtltools.cli.utils import normalize_steps, parse_args
from qtltools.pipelines.map_refinement import MapRefinementPipeline


def main(argv=None):
    args = parse_args(argv)
    steps = normalize_steps(args.steps)

    pipeline = MapRefinementPipeline(
        output_dir=args.outputdir,
        error_prob=args.error_prob,
        map_function=args.map_function,
        verbose=not args.quiet,
    )

    traits = [t.strip() for t in args.traits.split(',')] if args.traits else None
    codes = [c.strip() for c in args.genotype_codes.split(',')]
    if len(codes) != 3:
        raise ValueError("--genotype-codes needs three comma-separated codes")

    # 1. Load
    pipeline.load_data(
        cross_file=args.cross,
        cross_type=args.cross_type,
        map_file=args.map,
        phenotype_file=args.phenotype,
        genotype_codes=codes,
    )

    # 2. Refine
    if 'drop_similar' in steps:
        pipeline.drop_similar(rf_threshold=args.rf_threshold)
    if 'ripple' in steps:
        pipeline.order_markers(window=args.window, method=args.ripple_method,
                               max_passes=args.max_passes, seed=args.seed)
    if 'est_map' in steps:
        pipeline.estimate_map()

    # 3. Place new markers
    if 'place' in steps and args.markers:
        pipeline.place_markers(
            marker_file=args.markers,
            initial_geno_density=args.initial_geno_density,
            final_step=args.final_step,
            est_ci=not args.no_ci,
            drop=args.drop,
            min_gap=args.min_gap,
            min_lod=args.min_lod,
            seed=args.seed,
        )

    # 4. Scan traits
    if 'scan' in steps:
        pipeline.scan_traits(traits=traits, step=args.scan_step, threshold=args.threshold,
                             drop=args.drop, gene_file=args.genes)


if __name__ == "__main__":
    main()
