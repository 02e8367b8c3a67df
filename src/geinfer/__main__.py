"""
Command-line interface for geinfer.

Runs one or more generalization-error experiments on a bundled example dataset.
Run with: python -m geinfer [options]
"""

import argparse
import json

from ezcolorlog import root_logger as logger

from .core.resampling import list_resamplings
from .datasets import list_examples, load_example
from .evaluation import compare_methods
from .inference import EstimatorRegistry
from .learners import LEARNER_FACTORIES, get_learner
from .measures import MeasureRegistry


def create_parser():
    """Create and configure the argument parser."""
    parser = argparse.ArgumentParser(description="Estimate generalization error with confidence intervals")
    parser.add_argument(
        "--dataset",
        "-d",
        type=str,
        required=True,
        choices=list_examples(),
        help="Example dataset to evaluate on",
    )
    parser.add_argument(
        "--learner",
        "-l",
        type=str,
        default="rf",
        choices=sorted(LEARNER_FACTORIES),
        help="Learner to evaluate (default: rf)",
    )
    parser.add_argument(
        "--measure",
        "-M",
        type=str,
        default=None,
        choices=MeasureRegistry.list_measures(),
        help="Measure id (default: classif.ce or regr.mse depending on the dataset)",
    )
    parser.add_argument(
        "--resampling",
        "-r",
        type=str,
        action="append",
        default=None,
        help=(
            "Resampling kind, optionally with JSON parameters, e.g. 'cv' or "
            '\'subsampling:{"repeats": 20}\'. Repeat to compare several. '
            f"Kinds: {', '.join(list_resamplings())}"
        ),
    )
    parser.add_argument(
        "--method",
        "-m",
        type=str,
        default="auto",
        choices=["auto"] + EstimatorRegistry.list_methods(),
        help="Interval method (default: auto, chosen from the resampling)",
    )
    parser.add_argument("--alpha", "-a", type=float, default=0.05, help="Significance level")
    parser.add_argument("--seed", "-s", type=int, default=42, help="Random seed")
    parser.add_argument("--n_jobs", "-j", type=int, default=1, help="Parallel fold workers")
    parser.add_argument("--verbose", "-v", action="store_true", help="Print detailed output")
    return parser


def parse_resampling(value: str):
    """Parse 'kind' or 'kind:{json params}' into a resampling configuration"""
    kind, _, params = value.partition(":")
    config = {"kind": kind.strip()}
    if params:
        values = json.loads(params)
        if not isinstance(values, dict):
            raise ValueError(f"expected a JSON object of parameters, got {params}")
        config.update(values)
    return config


def main():
    """Main CLI entry point."""
    parser = create_parser()
    args = parser.parse_args()

    data = load_example(args.dataset)
    learner = get_learner(args.learner, data.task)
    measure = args.measure or ("classif.ce" if data.task == "clf" else "regr.mse")
    try:
        resamplings = [parse_resampling(r) for r in (args.resampling or ["cv"])]
    except ValueError as e:
        parser.error(f"invalid --resampling: {e}")

    logger.info(f"Dataset: {data}")
    logger.info(f"Learner: {learner.id}")
    logger.info(f"Measure: {measure}")
    logger.info(f"Resamplings: {resamplings}")
    logger.info(f"Method: {args.method}")
    logger.info("")

    compare_methods(
        learner,
        data,
        measure,
        [(r, args.method) for r in resamplings],
        alpha=args.alpha,
        seed=args.seed,
        n_jobs=args.n_jobs,
        verbose=args.verbose,
    )


if __name__ == "__main__":
    main()
