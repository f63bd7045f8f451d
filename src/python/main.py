#!/usr/bin/env python3
"""
===============================================================================
LOW-THRUST TRANSFER SEARCH - MAIN ENTRY POINT
===============================================================================
Earth -> Mars shaping-based transfer search campaign.

Phase 1 surveys departure epoch x time of flight x revolution count with
the low-order shape. Phase 2 optimizes the free shaping parameters on a
narrower grid and compares them with the low-order shape.

USAGE:
    python main.py                           # Nominal campaign
    python main.py --quick                   # Quick test run (reduced fidelity)
    python main.py --workers 4               # Parallel generation evaluation
    python main.py --evaluator pkg.mod:make  # Custom evaluator factory

OUTPUTS (in the configured output directory):
    baseline_grid_search.dat       - phase-1 records
    low_order_one_revolution.dat   - phase-2 low-order records
    high_order_optimized.dat       - phase-2 optimized records
    refinement_comparison.csv      - phase-2 vs phase-1 comparison table
    baseline_porkchop.png          - phase-1 cost map
    refinement_comparison.png      - phase-2 cost comparison
    campaign.log                   - run log

DEPENDENCIES:
    numpy, scipy, pandas, matplotlib, pyyaml
    Install: pip install numpy scipy pandas matplotlib pyyaml

===============================================================================
"""

import sys
import os
import argparse
import dataclasses
import importlib
import logging
import time
from datetime import datetime
from pathlib import Path

# ---------------------------------------------------------------------------
# Path setup: ensure all project modules are importable
# ---------------------------------------------------------------------------
PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT))

# ---------------------------------------------------------------------------
# Project imports
# ---------------------------------------------------------------------------
from core.exceptions import CampaignError, InvalidConfiguration
from simulation.campaign import CampaignConfig, CampaignOrchestrator, load_config
from simulation.result_sink import ResultSink
from simulation.synthetic import SyntheticEvaluatorFactory

logger = logging.getLogger('CAMPAIGN_MAIN')

DEFAULT_CONFIG = PROJECT_ROOT.parent.parent / 'config' / 'campaign_config.yaml'


def setup_logging(output_dir: str, level: str = 'INFO') -> None:
    """Log to stdout and to ``campaign.log`` in the output directory."""
    os.makedirs(output_dir, exist_ok=True)
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(os.path.join(output_dir, 'campaign.log'), mode='w'),
        ],
        force=True,
    )


def resolve_factory(reference: str):
    """
    Import an evaluator factory given as ``module:callable``.

    The callable is called with no arguments if it is a class or builder
    returning a factory, so both ``pkg.mod:Factory`` and
    ``pkg.mod:factory_instance`` work.
    """
    module_name, sep, attr = reference.partition(':')
    if not sep or not module_name or not attr:
        raise InvalidConfiguration(
            f"Evaluator must be given as 'module:callable', got '{reference}'"
        )
    try:
        module = importlib.import_module(module_name)
        target = getattr(module, attr)
    except (ImportError, AttributeError) as exc:
        raise InvalidConfiguration(f"Cannot load evaluator '{reference}': {exc}") from exc
    return target() if isinstance(target, type) else target


def build_config(args) -> CampaignConfig:
    """Load the YAML configuration and apply command line overrides."""
    config_path = Path(args.config) if args.config else DEFAULT_CONFIG
    if config_path.exists():
        config = load_config(config_path)
    else:
        logger.warning(f"Config {config_path} not found, using nominal campaign")
        config = CampaignConfig()

    if args.quick:
        config = config.quick()
    if args.workers is not None:
        config = dataclasses.replace(
            config,
            refinement=dataclasses.replace(config.refinement, workers=args.workers),
        )
    output = config.output
    if args.output_dir:
        output = dataclasses.replace(output, directory=args.output_dir)
    if args.no_plots:
        output = dataclasses.replace(output, plots=False)
    return dataclasses.replace(config, output=output)


def write_outputs(config: CampaignConfig, results) -> None:
    """Write the three result files, the comparison table and the plots."""
    out = config.output
    sink = ResultSink(out.directory, delimiter=out.delimiter, precision=out.precision)
    sink.write_campaign(
        results,
        baseline_name=out.baseline_file,
        low_order_name=out.low_order_file,
        high_order_name=out.high_order_file,
    )

    comparison_path = os.path.join(out.directory, 'refinement_comparison.csv')
    results.comparison().to_csv(comparison_path, index=False)
    logger.info(f"Comparison table saved to {comparison_path}")

    if out.plots:
        from visualization.porkchop import plot_baseline_porkchop, plot_refinement_comparison
        plot_baseline_porkchop(
            results.baseline, os.path.join(out.directory, 'baseline_porkchop.png'),
        )
        plot_refinement_comparison(
            results.high_order, results.low_order,
            os.path.join(out.directory, 'refinement_comparison.png'),
        )


def build_parser() -> argparse.ArgumentParser:
    """Command line interface of the campaign."""
    parser = argparse.ArgumentParser(
        description='Low-thrust transfer search: grid survey + population refinement',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py                             Nominal campaign
  python main.py --quick                     Quick test run
  python main.py --workers 4 --no-plots      Parallel, files only
  python main.py --evaluator mypkg.tof:make  Custom evaluator factory
        """
    )

    parser.add_argument('--config', type=str, default=None,
                        help='Path to campaign config YAML')
    parser.add_argument('--output-dir', type=str, default=None,
                        help='Override the output directory')
    parser.add_argument('--quick', action='store_true',
                        help='Quick test mode (coarse grids, small population)')
    parser.add_argument('--workers', type=int, default=None,
                        help='Worker processes per generation')
    parser.add_argument('--no-plots', action='store_true',
                        help='Skip plot generation')
    parser.add_argument('--evaluator', type=str, default=None,
                        help="Evaluator factory as 'module:callable' "
                             "(default: synthetic surface)")
    parser.add_argument('--log-level', type=str, default='INFO',
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help='Logging level (default: INFO)')

    return parser


def main(argv=None):
    """
    Main entry point. Parses command line arguments and runs the campaign.

    Returns:
        Process exit code.
    """
    args = build_parser().parse_args(argv)

    try:
        config = build_config(args)
    except CampaignError as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return 2

    setup_logging(config.output.directory, args.log_level)

    # Print banner
    print("=" * 70)
    print("  LOW-THRUST TRANSFER SEARCH")
    print(f"  Start time: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print(f"  Baseline points: {config.baseline.bounds.size}")
    print(f"  Refinement points: {config.refinement.bounds.size}")
    print("=" * 70)

    try:
        if args.evaluator:
            factory = resolve_factory(args.evaluator)
        else:
            factory = SyntheticEvaluatorFactory()
    except CampaignError as exc:
        logger.error(str(exc))
        return 2

    start = time.time()
    orchestrator = CampaignOrchestrator(config, factory)
    results = orchestrator.run()
    write_outputs(config, results)

    # --- Final Summary ---
    summary = results.summary()
    print("\n" + "=" * 70)
    print("  CAMPAIGN COMPLETE")
    print(f"  Total wall time: {time.time() - start:.1f} seconds")
    for key, value in summary.items():
        print(f"    {key:<24s} {value}")
    print(f"  Outputs saved to: {config.output.directory}")
    print("=" * 70)
    return 0


if __name__ == '__main__':
    sys.exit(main())
