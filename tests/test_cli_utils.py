import sys
import pytest

from qtltools.cli import utils


def test_normalize_steps_defaults_and_splitting() -> None:
    assert utils.normalize_steps([]) == list(utils.STEP_CHOICES)
    assert utils.normalize_steps(["ripple, est-map", "ripple"]) == ["ripple", "est_map"]
    with pytest.raises(ValueError):
        utils.normalize_steps(["bogus"])


def _run_parse_args(argv):
    orig = sys.argv
    try:
        sys.argv = argv
        return utils.parse_args()
    finally:
        sys.argv = orig


def test_parse_args_defaults(tmp_path) -> None:
    args = _run_parse_args(["prog", "--cross", str(tmp_path / "cross.csv")])

    assert args.cross.endswith("cross.csv")
    assert args.cross_type == 'f2'
    assert args.steps == list(utils.STEP_CHOICES)
    assert args.window == 3
    assert args.no_ci is False
    assert args.map_function == 'haldane'


def test_parse_args_respects_overrides(tmp_path) -> None:
    args = utils.parse_args(
        [
            "-c",
            str(tmp_path / "c.csv"),
            "-t",
            "riself",
            "--steps",
            "drop_similar",
            "place",
            "--markers",
            str(tmp_path / "new.csv"),
            "--window",
            "4",
            "--ripple-method",
            "length",
            "--final-step",
            "0.5",
            "--no-ci",
            "--seed",
            "7",
        ]
    )
    assert args.cross_type == 'riself'
    assert args.steps == ["drop_similar", "place"]
    assert args.markers.endswith("new.csv")
    assert args.window == 4
    assert args.ripple_method == 'length'
    assert args.final_step == 0.5
    assert args.no_ci is True
    assert args.seed == 7


def test_parse_args_requires_cross() -> None:
    with pytest.raises(SystemExit):
        utils.parse_args(["--window", "3"])
