"""Design a treatment plan from a CSV file and write the treated data.

This script is the command-line entrypoint for the library:

- binary outcome when ``--target`` is given, numeric outcome otherwise;
- optional cross-frame experiment (``--cross-frame``): the written training
  frame then holds out-of-fold values for the complex encodings, which is what
  a downstream model should be fitted on.

Outputs
-------
Writes, under ``--output-dir``:
- ``score_frame.csv``: one row per produced variable (significance, moves, ...)
- ``treated.csv``: the treated training frame (``prepare`` output, or the
  cross frame with ``--cross-frame``)
"""

from __future__ import annotations

import argparse
from dataclasses import fields
from pathlib import Path
import sys
from typing import Any, Dict, Optional, Sequence

import pandas as pd
import yaml

from variable_treatment.src.data.load import load_frame
from variable_treatment.src.models.config import TreatmentConfig, TreatmentConfigError
from variable_treatment.src.models.plan import (
    design_treatments_c,
    design_treatments_n,
    mk_cross_frame_c_experiment,
    mk_cross_frame_n_experiment,
)
from variable_treatment.src.models.prepare import prepare
from variable_treatment.src.utils.logging_utils import configure_logging
from variable_treatment.src.utils.seed_utils import set_global_seed

DEFAULT_CONFIG_PATH = Path("variable_treatment/configs/treatment.yaml")
DEFAULT_OUTPUT_DIR = Path("variable_treatment/outputs")

# camelCase spellings accepted in YAML files
_CONFIG_ALIASES = {
    "minFraction": "min_fraction",
    "smFactor": "sm_factor",
    "rareCount": "rare_count",
    "rareSig": "rare_sig",
    "collarProb": "collar_prob",
    "codeRestriction": "code_restriction",
    "forceSplit": "force_split",
    "catScaling": "cat_scaling",
    "randomState": "random_state",
}


def _as_bool(x: Any, default: bool = False) -> bool:
    if x is None:
        return default
    if isinstance(x, bool):
        return x
    if isinstance(x, (int, float)):
        return bool(x)
    if isinstance(x, str):
        return x.strip().lower() in {"1", "true", "t", "yes", "y", "on"}
    return default


def load_treatment_config(config_path: Path, logger) -> TreatmentConfig:
    """Load a :class:`TreatmentConfig` from the ``treatment:`` block of a YAML file.

    Keys may use the field names or their camelCase aliases. Unknown keys are
    ignored. A missing file yields the defaults.
    """

    if not config_path.is_file():
        logger.warning("Treatment config file not found at %s; using TreatmentConfig defaults.", config_path)
        return TreatmentConfig()

    cfg_dict = yaml.safe_load(config_path.read_text()) or {}
    raw = cfg_dict.get("treatment", {}) or {}

    valid_fields = {f.name for f in fields(TreatmentConfig)} - {"custom_coders"}
    kwargs: Dict[str, Any] = {}
    for key, value in raw.items():
        name = _CONFIG_ALIASES.get(key, key)
        if name in valid_fields:
            kwargs[name] = value
        else:
            logger.debug("Ignoring unknown treatment config key '%s'.", key)

    for name in ("force_split", "cat_scaling"):
        if name in kwargs:
            kwargs[name] = _as_bool(kwargs[name])
    if kwargs.get("code_restriction") is not None:
        kwargs["code_restriction"] = tuple(str(c) for c in kwargs["code_restriction"])

    return TreatmentConfig(**kwargs)


def _coerce_target(column: pd.Series, raw: str) -> Any:
    """Convert the command-line target to the outcome column's value type."""
    if pd.api.types.is_bool_dtype(column.dtype):
        return _as_bool(raw)
    if pd.api.types.is_numeric_dtype(column.dtype):
        value = float(raw)
        if pd.api.types.is_integer_dtype(column.dtype) and value.is_integer():
            return int(value)
        return value
    return raw


def _parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Design variable treatments from a CSV file and write the treated frame.",
    )
    parser.add_argument(
        "--data",
        type=Path,
        required=True,
        help="Training CSV/TSV file.",
    )
    parser.add_argument(
        "--outcome",
        type=str,
        required=True,
        help="Outcome column name.",
    )
    parser.add_argument(
        "--target",
        type=str,
        default=None,
        help="Outcome value counted as success; omit for a numeric outcome.",
    )
    parser.add_argument(
        "--vars",
        type=str,
        nargs="*",
        default=None,
        help="Variables to treat (default: every column except the outcome).",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG_PATH,
        help=f"YAML configuration file (default: {DEFAULT_CONFIG_PATH})",
    )
    parser.add_argument(
        "--cross-frame",
        action="store_true",
        help="Write the cross frame instead of the in-sample prepared frame.",
    )
    parser.add_argument(
        "--prune-sig",
        type=float,
        default=None,
        help="Keep only variables with significance <= this value.",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=DEFAULT_OUTPUT_DIR,
        help=f"Directory for score_frame.csv and treated.csv (default: {DEFAULT_OUTPUT_DIR})",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Optional log file.",
    )
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = _parse_args(argv)
    logger = configure_logging(log_file=args.log_file, logger_name="run_design")

    config = load_treatment_config(args.config, logger)
    if config.random_state is not None:
        set_global_seed(int(config.random_state))

    try:
        frame = load_frame(args.data)
    except FileNotFoundError as exc:
        logger.error("%s", exc)
        sys.exit(1)

    if args.outcome not in frame.columns:
        logger.error("Outcome column '%s' not found in %s.", args.outcome, args.data)
        sys.exit(1)
    varlist = args.vars or [c for c in frame.columns if c != args.outcome]
    logger.info("Loaded %d rows x %d columns from %s", frame.shape[0], frame.shape[1], args.data)
    logger.info("Designing treatments with config: %s", config)

    try:
        if args.target is not None:
            target = _coerce_target(frame[args.outcome], args.target)
            if args.cross_frame:
                experiment = mk_cross_frame_c_experiment(
                    frame, varlist, args.outcome, target, config=config, verbose=True
                )
            else:
                plan = design_treatments_c(frame, varlist, args.outcome, target, config=config, verbose=True)
        elif args.cross_frame:
            experiment = mk_cross_frame_n_experiment(frame, varlist, args.outcome, config=config, verbose=True)
        else:
            plan = design_treatments_n(frame, varlist, args.outcome, config=config, verbose=True)

        if args.cross_frame:
            plan = experiment.plan
            treated = experiment.cross_frame
            if args.prune_sig is not None:
                score_frame = plan.score_frame
                dropped = score_frame.loc[score_frame["sig"] > args.prune_sig, "var_name"]
                treated = treated.drop(columns=[c for c in dropped if c in treated.columns])
        else:
            treated = prepare(plan, frame, prune_sig=args.prune_sig)
    except TreatmentConfigError as exc:
        logger.error("Treatment design failed: %s", exc)
        sys.exit(2)

    args.output_dir.mkdir(parents=True, exist_ok=True)
    score_path = args.output_dir / "score_frame.csv"
    plan.score_frame.to_csv(score_path, index=False)
    logger.info("Saved score frame to %s", score_path)

    treated_path = args.output_dir / "treated.csv"
    treated.to_csv(treated_path, index=False)
    logger.info("Saved treated frame (%d columns) to %s", treated.shape[1], treated_path)


if __name__ == "__main__":
    main()
