"""
Statistical utilities for genetic map and marker analysis
"""

import numpy as np
from typing import Optional, Tuple

from .errors import ValidationError

MISSING_CODE = -9

MAP_FUNCTIONS: Tuple[str, ...] = ('haldane', 'kosambi', 'morgan')

# Genotype calls are coded as the dosage of the B allele
CROSS_STATES = {
    'bc': (0, 1),
    'dh': (0, 2),
    'riself': (0, 2),
    'risib': (0, 2),
    'f2': (0, 1, 2),
}

EXPECTED_FREQUENCIES = {
    'bc': (0.5, 0.5),
    'dh': (0.5, 0.5),
    'riself': (0.5, 0.5),
    'risib': (0.5, 0.5),
    'f2': (0.25, 0.5, 0.25),
}


def check_cross_type(cross_type: str) -> str:
    """Normalize and validate a cross type name"""
    key = str(cross_type).lower()
    if key not in CROSS_STATES:
        raise ValidationError(
            f"Unknown cross type '{cross_type}'; expected one of {sorted(CROSS_STATES)}"
        )
    return key


def check_map_function(map_function: str) -> str:
    """Normalize and validate a map function name"""
    key = str(map_function).lower()
    if key not in MAP_FUNCTIONS:
        raise ValidationError(
            f"Unknown map function '{map_function}'; expected one of {list(MAP_FUNCTIONS)}"
        )
    return key


def genotype_states(cross_type: str) -> np.ndarray:
    """Genotype codes (B-allele dosage) that are valid for a cross type"""
    return np.array(CROSS_STATES[check_cross_type(cross_type)], dtype=np.float64)


def dist_to_rf(d: np.ndarray, map_function: str = 'haldane') -> np.ndarray:
    """Convert map distances (cM) to recombination fractions

    Args:
        d: Distances in centiMorgans
        map_function: 'haldane', 'kosambi' or 'morgan'

    Returns:
        Recombination fractions in [0, 0.5]
    """
    map_function = check_map_function(map_function)
    d = np.maximum(np.asarray(d, dtype=np.float64), 0.0) / 100.0
    if map_function == 'haldane':
        return 0.5 * (1.0 - np.exp(-2.0 * d))
    if map_function == 'kosambi':
        return 0.5 * np.tanh(2.0 * d)
    return np.minimum(d, 0.5)


def rf_to_dist(r: np.ndarray, map_function: str = 'haldane', max_rf: float = 0.5 - 1e-8) -> np.ndarray:
    """Convert recombination fractions to map distances (cM)

    Fractions are clipped to [0, max_rf] so that unlinked intervals map to a
    large but finite distance.
    """
    map_function = check_map_function(map_function)
    r = np.clip(np.asarray(r, dtype=np.float64), 0.0, max_rf)
    if map_function == 'haldane':
        return -50.0 * np.log(1.0 - 2.0 * r)
    if map_function == 'kosambi':
        return 25.0 * np.log((1.0 + 2.0 * r) / (1.0 - 2.0 * r))
    return 100.0 * r


def missing_mask(genotypes: np.ndarray) -> np.ndarray:
    """Boolean mask of missing genotype calls (-9 or NaN)"""
    genotypes = np.asarray(genotypes, dtype=np.float64)
    return (genotypes == MISSING_CODE) | np.isnan(genotypes)


def calculate_missing_rate(genotypes: np.ndarray) -> np.ndarray:
    """Proportion of missing calls for each marker (column)

    Args:
        genotypes: Genotype matrix (individuals × markers)

    Returns:
        Array of missing rates, one per marker
    """
    genotypes = np.asarray(genotypes, dtype=np.float64)
    if genotypes.ndim == 1:
        genotypes = genotypes[:, np.newaxis]
    if genotypes.shape[0] == 0:
        return np.ones(genotypes.shape[1])
    return missing_mask(genotypes).mean(axis=0)


def genotype_frequencies(genotypes: np.ndarray, cross_type: str) -> np.ndarray:
    """Observed genotype frequencies per marker (markers × states)

    Markers without any observed call get a row of zeros.
    """
    genotypes = np.asarray(genotypes, dtype=np.float64)
    if genotypes.ndim == 1:
        genotypes = genotypes[:, np.newaxis]
    states = genotype_states(cross_type)
    observed = ~missing_mask(genotypes)
    counts = np.column_stack([
        np.sum(observed & (genotypes == state), axis=0) for state in states
    ]).astype(np.float64)
    totals = counts.sum(axis=1, keepdims=True)
    with np.errstate(divide='ignore', invalid='ignore'):
        freqs = np.where(totals > 0, counts / np.maximum(totals, 1.0), 0.0)
    return freqs


def genotype_balance(genotypes: np.ndarray, cross_type: str) -> np.ndarray:
    """Agreement of observed genotype frequencies with Mendelian expectation

    Computed as one minus the total-variation distance between observed and
    expected frequencies, so 1.0 is perfectly balanced and 0.0 is a marker
    with no observed calls or a single unexpected class.
    """
    cross_type = check_cross_type(cross_type)
    freqs = genotype_frequencies(genotypes, cross_type)
    expected = np.asarray(EXPECTED_FREQUENCIES[cross_type])
    balance = 1.0 - 0.5 * np.abs(freqs - expected[np.newaxis, :]).sum(axis=1)
    no_calls = freqs.sum(axis=1) == 0
    balance[no_calls] = 0.0
    return balance


def marker_quality_scores(genotypes: np.ndarray,
                          cross_type: str,
                          na_weight: float = 2.0,
                          balance_weight: float = 1.0) -> np.ndarray:
    """Weighted marker quality score used when picking marker subsets

    score = na_weight * (1 - missing_rate) + balance_weight * balance
    """
    if na_weight < 0 or balance_weight < 0:
        raise ValidationError("Marker score weights must be non-negative")
    completeness = 1.0 - calculate_missing_rate(genotypes)
    balance = genotype_balance(genotypes, cross_type)
    return na_weight * completeness + balance_weight * balance


def jitter_values(values: np.ndarray,
                  amount: float = 0.001,
                  rng: Optional[np.random.Generator] = None) -> np.ndarray:
    """Add uniform noise in [-amount, amount] to non-missing values"""
    if amount < 0:
        raise ValidationError("Jitter amount must be non-negative")
    rng = rng if rng is not None else np.random.default_rng()
    values = np.array(values, dtype=np.float64, copy=True)
    noise = rng.uniform(-amount, amount, size=values.shape)
    observed = ~np.isnan(values)
    values[observed] = values[observed] + noise[observed]
    return values
