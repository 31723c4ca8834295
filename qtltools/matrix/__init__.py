"""
Genotype probabilities, HMM kernels and recombination fractions
"""

from .genoprob import calc_genoprob, compute_genoprob
from .rf import RecombinationFractionMatrix, est_rf

__all__ = ['calc_genoprob', 'compute_genoprob', 'RecombinationFractionMatrix', 'est_rf']
