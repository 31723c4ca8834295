"""
Windowed local-search reordering of markers ("ripple")

For every window of adjacent markers the candidate orders (all permutations,
or a seeded random sample for large windows) are scored by the map
estimation oracle on the window plus one flanking marker each side. The best
candidate replaces the current order only if it improves the score by more
than ``tol``. Passes repeat until a full pass makes no change.
"""

import itertools
import warnings
import numpy as np
import pandas as pd
from dataclasses import dataclass, field
from tqdm import tqdm
from typing import Dict, List, Optional, Sequence, Tuple

from ..core.cross import Cross
from ..utils.data_types import MapEstimate
from ..utils.errors import ConvergenceWarning, ValidationError
from ..utils.stats import check_map_function

RIPPLE_METHODS = ('likelihood', 'length')


@dataclass(frozen=True)
class RippleDegradation:
    """A window (or final re-estimation) where the oracle result was rejected"""

    chrom: str
    window_start: int
    markers: Tuple[str, ...]
    reason: str


@dataclass
class RippleResult:
    cross: Cross
    orders: Dict[str, List[str]]
    input_orders: Dict[str, List[str]] = field(default_factory=dict)
    degradations: List[RippleDegradation] = field(default_factory=list)
    windows_per_pass: Dict[str, List[int]] = field(default_factory=dict)
    n_candidates: Dict[str, int] = field(default_factory=dict)
    passes: Dict[str, int] = field(default_factory=dict)
    estimates: Dict[str, MapEstimate] = field(default_factory=dict)

    @property
    def changed(self) -> Dict[str, bool]:
        """Whether each processed chromosome ended with a different order"""
        return {chrom: self.input_orders.get(chrom, order) != order for chrom, order in self.orders.items()}

    def to_dataframe(self) -> pd.DataFrame:
        """Degradations as a table [CHROM, WINDOW_START, MARKERS, REASON]"""
        return pd.DataFrame(
            [{'CHROM': d.chrom, 'WINDOW_START': d.window_start,
              'MARKERS': ','.join(d.markers), 'REASON': d.reason} for d in self.degradations],
            columns=['CHROM', 'WINDOW_START', 'MARKERS', 'REASON'],
        )


def _score(estimate: MapEstimate, method: str) -> float:
    if method == 'likelihood':
        return estimate.loglik
    return -estimate.total_length


def _candidate_orders(window: int,
                      max_exhaustive: int,
                      n_random_orders: int,
                      rng: np.random.Generator) -> List[Tuple[int, ...]]:
    """Permutations of range(window) other than the identity"""
    identity = tuple(range(window))
    if window <= max_exhaustive:
        return [p for p in itertools.permutations(identity) if p != identity]
    seen = set()
    out = []
    for _ in range(n_random_orders):
        perm = tuple(int(i) for i in rng.permutation(window))
        if perm != identity and perm not in seen:
            seen.add(perm)
            out.append(perm)
    return out


def _try_estimate(backend, genotypes, names, settings) -> Tuple[Optional[MapEstimate], Optional[str]]:
    """Run the oracle, turning failures into a rejection reason"""
    try:
        with warnings.catch_warnings():
            warnings.simplefilter('error', ConvergenceWarning)
            estimate = backend.estimate_order(genotypes, markers=names, **settings)
    except (ArithmeticError, np.linalg.LinAlgError) as exc:
        return None, f"{type(exc).__name__}: {exc}"
    except ConvergenceWarning as exc:
        return None, f"ConvergenceWarning: {exc}"
    if not estimate.converged:
        return None, f"did not converge after {estimate.n_iter} iterations"
    if not estimate.is_valid():
        return None, "non-finite or negative distance estimate"
    return estimate, None


def _ripple_window(order: List[str],
                   start: int,
                   window: int,
                   geno: Dict[str, np.ndarray],
                   candidates: List[Tuple[int, ...]],
                   method: str,
                   tol: float,
                   backend,
                   settings: Dict,
                   chrom: str) -> Tuple[List[str], bool, List[RippleDegradation]]:
    """Evaluate one window and return the (possibly updated) order"""
    lo = max(start - 1, 0)
    hi = min(start + window + 1, len(order))
    block = order[start:start + window]
    degradations = []

    def segment(markers: List[str]) -> List[str]:
        return order[lo:start] + markers + order[start + window:hi]

    current = segment(block)
    estimate, reason = _try_estimate(
        backend, np.column_stack([geno[m] for m in current]), current, settings
    )
    if estimate is None:
        degradations.append(RippleDegradation(chrom, start, tuple(block), f"current order: {reason}"))
        return order, False, degradations

    best_score = _score(estimate, method)
    best_block = None
    for perm in candidates:
        trial = [block[i] for i in perm]
        seg = segment(trial)
        estimate, reason = _try_estimate(
            backend, np.column_stack([geno[m] for m in seg]), seg, settings
        )
        if estimate is None:
            degradations.append(RippleDegradation(chrom, start, tuple(trial), reason))
            continue
        score = _score(estimate, method)
        if score > best_score + tol:
            best_score = score
            best_block = trial

    if best_block is None:
        return order, False, degradations
    return order[:start] + best_block + order[start + window:], True, degradations


def ripple(cross: Cross,
           window: int = 3,
           method: str = 'likelihood',
           max_passes: int = 10,
           max_exhaustive: int = 7,
           n_random_orders: int = 100,
           tol: float = 1e-6,
           error_prob: float = 1e-4,
           map_function: str = 'haldane',
           chromosomes: Optional[Sequence[str]] = None,
           reestimate: bool = True,
           seed: Optional[int] = None,
           backend=None,
           verbose: bool = False) -> RippleResult:
    """Improve marker order on each chromosome by windowed permutation search

    Args:
        cross: Cross object
        window: Number of adjacent markers permuted together (>= 2)
        method: 'likelihood' (maximize log-likelihood) or 'length' (minimize map length)
        max_passes: Maximum left-to-right sweeps per chromosome
        max_exhaustive: Largest window for which every permutation is tried
        n_random_orders: Random permutations drawn per window above max_exhaustive
        tol: Minimum score improvement required to accept a new order
        error_prob: Genotyping error probability passed to the oracle
        map_function: Map function passed to the oracle
        chromosomes: Chromosomes to process (default: all)
        reestimate: Re-estimate marker positions for the final order
        seed: Seed for random permutation sampling
        backend: Backend implementing the map estimation oracle
        verbose: Show progress and report degradations

    Returns:
        RippleResult with the reordered cross
    """
    from ..backend import get_backend

    if window < 2:
        raise ValidationError("window must be at least 2")
    if max_passes < 1:
        raise ValidationError("max_passes must be at least 1")
    if method not in RIPPLE_METHODS:
        raise ValidationError(f"Unknown ripple method '{method}'; expected one of {list(RIPPLE_METHODS)}")
    map_function = check_map_function(map_function)

    backend = get_backend(backend)
    rng = np.random.default_rng(seed)
    settings = {'cross_type': cross.cross_type, 'error_prob': error_prob, 'map_function': map_function}
    chroms = cross.chromosomes if chromosomes is None else [str(c) for c in chromosomes]

    new_map = cross.genetic_map
    orders: Dict[str, List[str]] = {}
    degradations: List[RippleDegradation] = []
    windows_per_pass: Dict[str, List[int]] = {}
    n_candidates: Dict[str, int] = {}
    passes: Dict[str, int] = {}
    estimates: Dict[str, MapEstimate] = {}

    for chrom in chroms:
        order = cross.genetic_map.chrom_markers(chrom)
        original_pos = np.sort(cross.genetic_map.chrom_positions(chrom))
        orders[chrom] = list(order)
        if len(order) < 2:
            continue

        geno = dict(zip(order, cross.chrom_genotypes(chrom).T))
        w = min(window, len(order))
        candidates = _candidate_orders(w, max_exhaustive, n_random_orders, rng)
        n_candidates[chrom] = len(candidates) + 1
        windows_per_pass[chrom] = []
        chrom_degradations: List[RippleDegradation] = []

        n_pass = 0
        for n_pass in range(1, max_passes + 1):
            changed = False
            starts = range(len(order) - w + 1)
            windows_per_pass[chrom].append(len(starts))
            for start in tqdm(starts, desc=f"Ripple chr {chrom} pass {n_pass}",
                              disable=not verbose, leave=False):
                order, moved, rejected = _ripple_window(
                    order, start, w, geno, candidates, method, tol, backend, settings, chrom
                )
                changed = changed or moved
                chrom_degradations.extend(rejected)
            if not changed:
                break
        passes[chrom] = n_pass
        orders[chrom] = list(order)

        positions = None
        if reestimate:
            estimate, reason = _try_estimate(
                backend, np.column_stack([geno[m] for m in order]), order,
                dict(settings, chrom=chrom)
            )
            if estimate is None:
                chrom_degradations.append(RippleDegradation(chrom, -1, tuple(order), f"final map: {reason}"))
            else:
                estimates[chrom] = estimate
                positions = estimate.positions(0.0)
        if positions is None:
            positions = original_pos
        new_map = new_map.with_chrom_order(chrom, order, positions)

        if chrom_degradations:
            warnings.warn(f"Chromosome {chrom}: {len(chrom_degradations)} candidate orders rejected "
                          f"by the map estimation oracle", ConvergenceWarning)
            if verbose:
                for d in chrom_degradations:
                    print(f"   Rejected chr {d.chrom} window {d.window_start}: {d.reason}")
        degradations.extend(chrom_degradations)
        if verbose:
            print(f"   Chromosome {chrom}: {passes[chrom]} passes, "
                  f"{len(chrom_degradations)} rejected candidates")

    return RippleResult(
        cross=cross.with_map(new_map),
        orders=orders,
        input_orders={c: cross.genetic_map.chrom_markers(c) for c in chroms},
        degradations=degradations,
        windows_per_pass=windows_per_pass,
        n_candidates=n_candidates,
        passes=passes,
        estimates=estimates,
    )
