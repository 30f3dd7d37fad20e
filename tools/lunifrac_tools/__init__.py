"""
Longitudinal UniFrac toolkit for paired microbiome samples.

This package computes phylogenetically weighted distances between subjects
based on how their microbial communities changed between two time points,
along with helpers for loading data, converting distances to kernels and
plotting.

Usage:
    from lunifrac_tools import lunifrac, load_abundance_table, load_metadata, ...
"""

from .lunifrac_core import (
    lunifrac,
    accumulate_branch_abundance,
    compute_subject_signals,
    pairwise_change_distances,
    GeneralizedMetric,
    UnweightedMetric,
    LUniFracResult,
    SubjectSignals
)

from .lunifrac_tree import (
    BranchTable,
    load_tree,
    is_rooted,
    prepare_tree,
    build_branch_table
)

from .lunifrac_utils import (
    TimePoint,
    load_abundance_table,
    load_metadata,
    normalize_proportions,
    split_time_points,
    collapse_to_subjects,
    simulate_longitudinal_data
)

from .lunifrac_stats import (
    distance_to_kernel,
    kernels_from_result,
    summarize_distances
)

__all__ = [
    'lunifrac',
    'accumulate_branch_abundance',
    'compute_subject_signals',
    'pairwise_change_distances',
    'GeneralizedMetric',
    'UnweightedMetric',
    'LUniFracResult',
    'SubjectSignals',
    'BranchTable',
    'load_tree',
    'is_rooted',
    'prepare_tree',
    'build_branch_table',
    'TimePoint',
    'load_abundance_table',
    'load_metadata',
    'normalize_proportions',
    'split_time_points',
    'collapse_to_subjects',
    'simulate_longitudinal_data',
    'distance_to_kernel',
    'kernels_from_result',
    'summarize_distances'
]
