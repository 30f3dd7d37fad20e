"""
Summaries and kernel conversion for LUniFrac distance matrices.
"""

import logging

import numpy as np
import pandas as pd
from scipy.linalg import eigh


logger = logging.getLogger(__name__)


def distance_to_kernel(distance_matrix):
    """
    Convert a distance matrix into a positive semi-definite kernel.

    Uses Gower centring, ``K = -1/2 J D^2 J`` with ``J = I - 11'/n``, and
    clips negative eigenvalues to zero so the kernel can be used by
    kernel-based association tests.

    Parameters:
    -----------
    distance_matrix : array-like, pandas.DataFrame or skbio.DistanceMatrix
        Square, symmetric distance matrix

    Returns:
    --------
    numpy.ndarray or pandas.DataFrame
        Kernel (similarity) matrix; a DataFrame when given a DataFrame
    """
    labels = None
    if isinstance(distance_matrix, pd.DataFrame):
        labels = distance_matrix.index
        values = distance_matrix.values
    else:
        values = getattr(distance_matrix, 'data', distance_matrix)

    D = np.asarray(values, dtype=float)
    if D.ndim != 2 or D.shape[0] != D.shape[1]:
        raise ValueError(f"Distance matrix must be square, got shape {D.shape}")

    n = D.shape[0]
    centering = np.eye(n) - np.ones((n, n)) / n
    kernel = -0.5 * centering @ (D * D) @ centering

    # Make the kernel positive semi-definite
    eigenvalues, eigenvectors = eigh(kernel)
    n_negative = int((eigenvalues < 0).sum())
    if n_negative:
        logger.debug(f"Clipping {n_negative} negative eigenvalues of the kernel")
    eigenvalues = np.clip(eigenvalues, 0, None)
    kernel = (eigenvectors * eigenvalues) @ eigenvectors.T
    kernel = (kernel + kernel.T) / 2

    if labels is not None:
        return pd.DataFrame(kernel, index=labels, columns=labels)
    return kernel


def kernels_from_result(result):
    """Kernel matrix for every metric of a ``LUniFracResult``, keyed by label."""
    return {metric.label: distance_to_kernel(result.to_frame(metric)) for metric in result.metrics}


def summarize_distances(result):
    """
    Summarize the between-subject distances of each metric.

    Parameters:
    -----------
    result : LUniFracResult
        Computed LUniFrac distances

    Returns:
    --------
    pandas.DataFrame
        One row per metric with the number of subject pairs and the mean,
        median, minimum and maximum distance
    """
    n = len(result.subjects)
    upper = np.triu_indices(n, k=1)

    rows = {}
    for metric in result.metrics:
        values = result[metric][upper]
        if len(values) == 0:
            rows[metric.label] = {'pairs': 0, 'mean': np.nan, 'median': np.nan,
                                  'min': np.nan, 'max': np.nan}
            continue
        rows[metric.label] = {
            'pairs': len(values),
            'mean': values.mean(),
            'median': np.median(values),
            'min': values.min(),
            'max': values.max()
        }

    return pd.DataFrame.from_dict(rows, orient='index')
