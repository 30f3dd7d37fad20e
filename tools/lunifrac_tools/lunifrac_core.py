"""
Longitudinal UniFrac (LUniFrac) distances.

Subjects sampled at two time points are compared by how their communities
changed: taxon proportions are accumulated onto tree branches, each subject's
branch-level change between time points is summarized, and the change
profiles of every pair of subjects are reduced to a distance under the
unweighted metric and one generalized metric per alpha.
"""

import logging
from dataclasses import dataclass

import numpy as np
import pandas as pd
from skbio.stats.distance import DistanceMatrix

from .lunifrac_tree import prepare_tree, build_branch_table
from .lunifrac_utils import normalize_proportions, match_taxa, split_time_points


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UnweightedMetric:
    """Presence/absence change metric."""

    @property
    def label(self):
        return 'd_UW'


@dataclass(frozen=True)
class GeneralizedMetric:
    """Abundance-weighted change metric; larger alpha favours abundant lineages."""
    alpha: float

    def __post_init__(self):
        alpha = float(self.alpha)
        if not np.isfinite(alpha) or alpha < 0:
            raise ValueError(f"alpha must be a finite non-negative number, got {self.alpha}")
        object.__setattr__(self, 'alpha', alpha)

    @property
    def label(self):
        if self.alpha.is_integer():
            return f"d_{int(self.alpha)}"
        return f"d_{self.alpha!r}"


@dataclass(frozen=True)
class SubjectSignals:
    """
    Branch-level change summaries, each of shape (branches, subjects).

    ``avg`` is the mean cumulative abundance over the two time points,
    ``diff_gen`` the signed relative change in [-1, 1] and ``diff_uw`` the
    change in presence (-1 lost, 0 unchanged, 1 gained).
    """
    avg: np.ndarray
    diff_gen: np.ndarray
    diff_uw: np.ndarray


class LUniFracResult:
    """
    Subject-by-subject distance matrices, one per metric.

    Matrices can be looked up by metric descriptor or by label
    (``result['d_UW']``, ``result[GeneralizedMetric(0.5)]``).
    """

    def __init__(self, subjects, metrics, matrices):
        self.subjects = tuple(subjects)
        self.metrics = tuple(metrics)
        self._matrices = dict(zip(self.metrics, matrices))
        self._by_label = {metric.label: metric for metric in self.metrics}

    def __repr__(self):
        return f"LUniFracResult({len(self.subjects)} subjects, metrics={self.labels})"

    def __len__(self):
        return len(self.metrics)

    def __iter__(self):
        return iter(self.metrics)

    def __contains__(self, key):
        return key in self._matrices or key in self._by_label

    def __getitem__(self, key):
        return self._matrices[self._resolve(key)]

    def _resolve(self, key):
        if isinstance(key, str):
            if key not in self._by_label:
                raise KeyError(f"Unknown metric '{key}'; available: {self.labels}")
            return self._by_label[key]
        if key not in self._matrices:
            raise KeyError(f"Metric {key} was not computed")
        return key

    @property
    def labels(self):
        return [metric.label for metric in self.metrics]

    def to_array(self):
        """Stack all matrices into a (subject, subject, metric) array."""
        return np.stack([self._matrices[metric] for metric in self.metrics], axis=2)

    def to_frame(self, metric):
        """Distance matrix for one metric as a labelled DataFrame."""
        return pd.DataFrame(self[metric], index=list(self.subjects), columns=list(self.subjects))

    def to_distance_matrix(self, metric):
        """Distance matrix for one metric as a ``skbio.DistanceMatrix``."""
        return DistanceMatrix(self[metric], ids=[str(subject) for subject in self.subjects])


def accumulate_branch_abundance(proportions, branch_table):
    """
    Accumulate taxon proportions onto tree branches.

    Parameters:
    -----------
    proportions : array-like
        Samples x taxa proportions, columns in ``branch_table.tip_labels`` order
    branch_table : BranchTable
        Tree arena

    Returns:
    --------
    numpy.ndarray
        Branches x samples array; entry (b, s) is the total proportion of
        sample s carried by the taxa descending through branch b. Rows follow
        ``branch_table.edges``.
    """
    proportions = np.asarray(proportions, dtype=float)
    if proportions.ndim != 2 or proportions.shape[1] != branch_table.n_tips:
        raise ValueError(f"Expected a samples x {branch_table.n_tips} proportion matrix, "
                         f"got shape {proportions.shape}")

    node_totals = np.zeros((branch_table.n_nodes, proportions.shape[0]))
    node_totals[:branch_table.n_tips] = proportions.T

    # Node ids are post-ordered, so each node is complete before it is
    # added into its parent
    parent = branch_table.parent
    for node in range(branch_table.n_branches):
        node_totals[parent[node]] += node_totals[node]

    return node_totals[:branch_table.n_branches]


def compute_subject_signals(cum_t1, cum_t2):
    """
    Summarize each subject's change at every branch.

    Parameters:
    -----------
    cum_t1, cum_t2 : array-like
        Branches x subjects cumulative abundances at the first and second
        time point, with subjects in the same order

    Returns:
    --------
    SubjectSignals
    """
    cum_t1 = np.asarray(cum_t1, dtype=float)
    cum_t2 = np.asarray(cum_t2, dtype=float)
    if cum_t1.shape != cum_t2.shape:
        raise ValueError(f"Time point matrices differ in shape: {cum_t1.shape} vs {cum_t2.shape}")

    total = cum_t1 + cum_t2

    # Absent at both time points counts as no change
    diff_gen = np.divide(cum_t2 - cum_t1, total, out=np.zeros_like(total), where=total != 0)
    diff_uw = (cum_t2 > 0).astype(int) - (cum_t1 > 0).astype(int)

    return SubjectSignals(avg=total / 2, diff_gen=diff_gen, diff_uw=diff_uw)


def _weighted_mean(values, weights):
    denominator = weights.sum()
    if denominator <= 0:
        return 0.0
    return float((values * weights).sum() / denominator)


def build_metrics(alpha):
    """Generalized metrics for each distinct alpha, followed by the unweighted metric."""
    alphas = np.atleast_1d(np.asarray(alpha, dtype=float)).tolist()
    if not alphas:
        raise ValueError("At least one alpha value is required")

    metrics = []
    for value in alphas:
        metric = GeneralizedMetric(value)
        if metric not in metrics:
            metrics.append(metric)
    metrics.append(UnweightedMetric())
    return metrics


def pairwise_change_distances(cum_t1, cum_t2, branch_lengths, alpha=(0, 0.5, 1), subjects=None):
    """
    Compute LUniFrac distances between all pairs of subjects.

    Only branches where at least one subject of a pair changed take part in
    that pair's distance. A pair with no such branch, or whose branches
    carry no weight, has distance 0.

    Parameters:
    -----------
    cum_t1, cum_t2 : array-like
        Branches x subjects cumulative abundances at each time point
    branch_lengths : array-like
        Length of each branch, aligned to the rows of ``cum_t1``
    alpha : float or sequence of float
        Exponents of the generalized metrics
    subjects : sequence, optional
        Subject labels, aligned to the columns; defaults to 0 .. n-1

    Returns:
    --------
    LUniFracResult
    """
    metrics = build_metrics(alpha)
    generalized = metrics[:-1]

    signals = compute_subject_signals(cum_t1, cum_t2)
    branch_lengths = np.asarray(branch_lengths, dtype=float)
    n_branches, n_subjects = signals.avg.shape

    if branch_lengths.shape != (n_branches,):
        raise ValueError(f"Expected {n_branches} branch lengths, got {branch_lengths.shape[0]}")
    if subjects is None:
        subjects = list(range(n_subjects))
    if len(subjects) != n_subjects:
        raise ValueError(f"Expected {n_subjects} subject labels, got {len(subjects)}")

    logger.info(f"Computing LUniFrac distances for {n_subjects} subjects over "
                f"{n_branches} branches ({', '.join(metric.label for metric in metrics)})")

    distances = np.zeros((len(metrics), n_subjects, n_subjects))

    for i in range(1, n_subjects):
        for j in range(i):
            d_i = signals.diff_gen[:, i]
            d_j = signals.diff_gen[:, j]
            active = (d_i != 0) | (d_j != 0)

            delta = np.abs(d_i[active] - d_j[active]) / 2
            pooled_avg = (signals.avg[active, i] + signals.avg[active, j]) / 2
            lengths = branch_lengths[active]

            for k, metric in enumerate(generalized):
                weights = lengths * pooled_avg ** metric.alpha
                distances[k, i, j] = distances[k, j, i] = _weighted_mean(delta, weights)

            u_i = signals.diff_uw[:, i]
            u_j = signals.diff_uw[:, j]
            active_uw = (u_i != 0) | (u_j != 0)

            delta_uw = np.abs(u_i[active_uw] - u_j[active_uw]) / 2
            distances[-1, i, j] = distances[-1, j, i] = _weighted_mean(delta_uw, branch_lengths[active_uw])

    return LUniFracResult(subjects, metrics, list(distances))


def lunifrac(abundance_df, tree, metadata_df, time_labels, alpha=(0, 0.5, 1),
             subject_column='subjID', time_column='time'):
    """
    Longitudinal UniFrac distances between subjects sampled at two time points.

    Parameters:
    -----------
    abundance_df : pandas.DataFrame
        Counts or proportions with samples as index, taxa as columns
    tree : skbio.TreeNode, str or Path
        Rooted phylogenetic tree whose tips include every taxon
    metadata_df : pandas.DataFrame
        Metadata DataFrame with samples as index
    time_labels : sequence of two labels
        Raw labels of the first and second time point in ``time_column``
    alpha : float or sequence of float
        Exponents of the generalized metrics
    subject_column : str
        Metadata variable for subject ID
    time_column : str
        Metadata variable for time point

    Returns:
    --------
    LUniFracResult
        Generalized distances for each alpha plus the unweighted distance
    """
    # Validation happens before any distance computation
    build_metrics(alpha)

    abundance_df = abundance_df.copy()
    abundance_df.index = abundance_df.index.astype(str)
    abundance_df.columns = abundance_df.columns.astype(str)

    tree = prepare_tree(tree, abundance_df.columns)
    branch_table = build_branch_table(tree)

    proportions = match_taxa(normalize_proportions(abundance_df), branch_table.tip_labels)

    subjects, samples_t1, samples_t2 = split_time_points(
        proportions.index, metadata_df, subject_column, time_column, time_labels
    )

    cum = accumulate_branch_abundance(proportions.values, branch_table)
    position = {sample: k for k, sample in enumerate(proportions.index)}
    cum_t1 = cum[:, [position[sample] for sample in samples_t1]]
    cum_t2 = cum[:, [position[sample] for sample in samples_t2]]

    return pairwise_change_distances(cum_t1, cum_t2, branch_table.branch_lengths,
                                     alpha=alpha, subjects=subjects)
