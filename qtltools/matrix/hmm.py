"""
Hidden Markov model for genotypes along a chromosome

Provides the cross-type specific initial, transition and emission
probabilities, numba-compiled forward/backward kernels and the EM estimator
of inter-marker recombination fractions used for map re-estimation.
"""

import numpy as np
import numba
from typing import Optional, Tuple

from ..utils.errors import ValidationError
from ..utils.stats import (
    EXPECTED_FREQUENCIES,
    check_cross_type,
    genotype_states,
    missing_mask,
)

RF_MIN = 1e-10
RF_MAX = 0.5


def initial_probs(cross_type: str) -> np.ndarray:
    """Prior genotype probabilities at any single locus"""
    return np.asarray(EXPECTED_FREQUENCIES[check_cross_type(cross_type)], dtype=np.float64)


def _ri_rate(cross_type: str, r: np.ndarray) -> np.ndarray:
    """Map expansion for recombinant inbred lines (Haldane & Waddington)"""
    if cross_type == 'riself':
        return 2.0 * r / (1.0 + 2.0 * r)
    if cross_type == 'risib':
        return 4.0 * r / (1.0 + 6.0 * r)
    return r


def _ri_rate_inverse(cross_type: str, big_r: np.ndarray) -> np.ndarray:
    big_r = np.clip(big_r, 0.0, 0.5)
    if cross_type == 'riself':
        return big_r / (2.0 - 2.0 * big_r)
    if cross_type == 'risib':
        return big_r / (4.0 - 6.0 * big_r)
    return big_r


def transition_matrices(cross_type: str, rf: np.ndarray) -> np.ndarray:
    """Stacked transition matrices for consecutive intervals

    Args:
        cross_type: Cross type
        rf: Recombination fractions of the m-1 intervals

    Returns:
        Array of shape (m-1, n_states, n_states)
    """
    cross_type = check_cross_type(cross_type)
    r = np.clip(np.asarray(rf, dtype=np.float64), 0.0, RF_MAX)
    n = len(r)
    if cross_type == 'f2':
        trans = np.empty((n, 3, 3), dtype=np.float64)
        nr = 1.0 - r
        trans[:, 0, 0] = nr * nr
        trans[:, 0, 1] = 2.0 * r * nr
        trans[:, 0, 2] = r * r
        trans[:, 1, 0] = r * nr
        trans[:, 1, 1] = nr * nr + r * r
        trans[:, 1, 2] = r * nr
        trans[:, 2, 0] = r * r
        trans[:, 2, 1] = 2.0 * r * nr
        trans[:, 2, 2] = nr * nr
        return trans

    big_r = _ri_rate(cross_type, r)
    trans = np.empty((n, 2, 2), dtype=np.float64)
    trans[:, 0, 0] = 1.0 - big_r
    trans[:, 0, 1] = big_r
    trans[:, 1, 0] = big_r
    trans[:, 1, 1] = 1.0 - big_r
    return trans


def emission_probs(genotypes: np.ndarray, cross_type: str, error_prob: float = 1e-4) -> np.ndarray:
    """P(observed call | true genotype) for every individual and locus

    Missing calls (and pseudomarker columns filled with NaN) emit 1 for every
    state. Observed calls emit 1 - error_prob for the matching state and
    share error_prob evenly among the others.

    Returns:
        Array of shape (n_individuals, n_loci, n_states)
    """
    if not (0.0 <= error_prob < 1.0):
        raise ValidationError("error_prob must be in [0, 1)")
    states = genotype_states(cross_type)
    n_states = len(states)
    genotypes = np.asarray(genotypes, dtype=np.float64)
    observed = ~missing_mask(genotypes)
    emit = np.ones(genotypes.shape + (n_states,), dtype=np.float64)
    off = error_prob / (n_states - 1)
    for s, state in enumerate(states):
        match = genotypes == state
        emit[..., s] = np.where(observed, np.where(match, 1.0 - error_prob, off), 1.0)
    return emit


@numba.jit(nopython=True, cache=True)
def _forward_backward(init, trans, emit):
    """Scaled forward/backward recursions for every individual

    alpha and beta are normalized at each locus; loglik holds the per-
    individual log-likelihood accumulated from the forward normalizers.
    """
    n, m, k = emit.shape
    alpha = np.zeros((n, m, k))
    beta = np.zeros((n, m, k))
    loglik = np.zeros(n)

    for i in range(n):
        ll = 0.0
        tot = 0.0
        for s in range(k):
            alpha[i, 0, s] = init[s] * emit[i, 0, s]
            tot += alpha[i, 0, s]
        if tot > 0.0:
            for s in range(k):
                alpha[i, 0, s] /= tot
            ll += np.log(tot)
        else:
            for s in range(k):
                alpha[i, 0, s] = 1.0 / k
            ll = -np.inf

        for j in range(1, m):
            tot = 0.0
            for s in range(k):
                acc = 0.0
                for t in range(k):
                    acc += alpha[i, j - 1, t] * trans[j - 1, t, s]
                alpha[i, j, s] = acc * emit[i, j, s]
                tot += alpha[i, j, s]
            if tot > 0.0:
                for s in range(k):
                    alpha[i, j, s] /= tot
                ll += np.log(tot)
            else:
                for s in range(k):
                    alpha[i, j, s] = 1.0 / k
                ll = -np.inf
        loglik[i] = ll

        for s in range(k):
            beta[i, m - 1, s] = 1.0
        for j in range(m - 2, -1, -1):
            tot = 0.0
            for s in range(k):
                acc = 0.0
                for t in range(k):
                    acc += trans[j, s, t] * emit[i, j + 1, t] * beta[i, j + 1, t]
                beta[i, j, s] = acc
                tot += acc
            if tot > 0.0:
                for s in range(k):
                    beta[i, j, s] /= tot
            else:
                for s in range(k):
                    beta[i, j, s] = 1.0 / k

    return alpha, beta, loglik


@numba.jit(nopython=True, cache=True)
def _expected_transitions(alpha, beta, trans, emit):
    """Posterior expected (from, to) state counts per interval, summed over individuals"""
    n, m, k = emit.shape
    xi = np.zeros((m - 1, k, k))
    tmp = np.zeros((k, k))
    for i in range(n):
        for j in range(m - 1):
            tot = 0.0
            for a in range(k):
                for b in range(k):
                    v = alpha[i, j, a] * trans[j, a, b] * emit[i, j + 1, b] * beta[i, j + 1, b]
                    tmp[a, b] = v
                    tot += v
            if tot > 0.0:
                for a in range(k):
                    for b in range(k):
                        xi[j, a, b] += tmp[a, b] / tot
    return xi


def forward_backward(emit: np.ndarray, cross_type: str, rf: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Run the forward/backward recursions

    Args:
        emit: Emission probabilities (n_individuals, n_loci, n_states)
        cross_type: Cross type
        rf: Recombination fractions between consecutive loci

    Returns:
        Tuple of (alpha, beta, per-individual log-likelihood)
    """
    init = initial_probs(cross_type)
    trans = np.ascontiguousarray(transition_matrices(cross_type, rf))
    return _forward_backward(init, trans, np.ascontiguousarray(emit))


def posterior_probs(emit: np.ndarray, cross_type: str, rf: np.ndarray) -> np.ndarray:
    """Posterior genotype probabilities (n_individuals, n_loci, n_states)"""
    alpha, beta, _ = forward_backward(emit, cross_type, rf)
    probs = alpha * beta
    totals = probs.sum(axis=2, keepdims=True)
    k = probs.shape[2]
    return np.where(totals > 0, probs / np.where(totals > 0, totals, 1.0), 1.0 / k)


def _f2_recombinations(r: np.ndarray) -> np.ndarray:
    """Expected recombinant gametes for each F2 (from, to) state pair"""
    nrec = np.empty((len(r), 3, 3), dtype=np.float64)
    nrec[:] = np.array([[0.0, 1.0, 2.0], [1.0, 0.0, 1.0], [2.0, 1.0, 0.0]])
    both = r * r
    nrec[:, 1, 1] = 2.0 * both / ((1.0 - r) ** 2 + both)
    return nrec


def _update_rf(xi: np.ndarray, cross_type: str, rf: np.ndarray) -> np.ndarray:
    totals = xi.sum(axis=(1, 2))
    safe = np.where(totals > 0, totals, 1.0)
    if cross_type == 'f2':
        rec = np.sum(xi * _f2_recombinations(rf), axis=(1, 2))
        new_rf = rec / (2.0 * safe)
    else:
        switches = xi[:, 0, 1] + xi[:, 1, 0]
        new_rf = _ri_rate_inverse(cross_type, switches / safe)
    new_rf = np.where(totals > 0, new_rf, rf)
    return np.clip(new_rf, RF_MIN, RF_MAX)


def em_estimate_rf(genotypes: np.ndarray,
                   cross_type: str,
                   error_prob: float = 1e-4,
                   start_rf: Optional[np.ndarray] = None,
                   maxit: int = 1000,
                   tol: float = 1e-6) -> Tuple[np.ndarray, float, int, bool]:
    """Estimate inter-marker recombination fractions by EM (Lander-Green)

    Args:
        genotypes: Calls for one ordered set of markers (individuals × markers)
        cross_type: Cross type
        error_prob: Genotyping error probability
        start_rf: Starting fractions for the m-1 intervals (default 0.1 each)
        maxit: Maximum EM iterations
        tol: Convergence tolerance on the largest change in any fraction

    Returns:
        Tuple of (rf, log-likelihood, iterations, converged)
    """
    cross_type = check_cross_type(cross_type)
    genotypes = np.asarray(genotypes, dtype=np.float64)
    if genotypes.ndim != 2 or genotypes.shape[1] == 0:
        raise ValidationError("Map estimation needs at least one marker column")
    if maxit <= 0:
        raise ValidationError("maxit must be positive")

    n_markers = genotypes.shape[1]
    emit = emission_probs(genotypes, cross_type, error_prob)

    if start_rf is None:
        rf = np.full(n_markers - 1, 0.1)
    else:
        rf = np.clip(np.asarray(start_rf, dtype=np.float64), RF_MIN, RF_MAX)
        if len(rf) != n_markers - 1:
            raise ValidationError("start_rf must have one value per interval")

    if n_markers == 1:
        _, _, loglik = forward_backward(emit, cross_type, rf)
        return rf, float(np.sum(loglik)), 0, True

    init = initial_probs(cross_type)
    converged = False
    n_iter = 0
    for n_iter in range(1, maxit + 1):
        trans = np.ascontiguousarray(transition_matrices(cross_type, rf))
        alpha, beta, _ = _forward_backward(init, trans, emit)
        xi = _expected_transitions(alpha, beta, trans, emit)
        new_rf = _update_rf(xi, cross_type, rf)
        change = float(np.max(np.abs(new_rf - rf)))
        rf = new_rf
        if change < tol:
            converged = True
            break

    _, _, loglik = forward_backward(emit, cross_type, rf)
    return rf, float(np.sum(loglik)), n_iter, converged
