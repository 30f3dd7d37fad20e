"""
Utility functions for preparing abundance tables and metadata for LUniFrac.
"""

import logging
from enum import Enum

import numpy as np
import pandas as pd
from skbio import TreeNode


logger = logging.getLogger(__name__)


class TimePoint(Enum):
    """The two sampling occasions of a longitudinal design."""
    FIRST = 1
    SECOND = 2


def load_abundance_table(filepath, taxa_as_rows=True, sep=None):
    """
    Load an abundance table from a delimited text file.

    Parameters:
    -----------
    filepath : str or Path
        Path to the abundance file
    taxa_as_rows : bool
        Whether the file has taxa as rows and samples as columns
    sep : str, optional
        Field separator; inferred from the file extension when omitted

    Returns:
    --------
    pandas.DataFrame
        Abundance DataFrame with samples as index, taxa as columns
    """
    if sep is None:
        sep = '\t' if str(filepath).endswith(('.tsv', '.txt')) else ','

    abundance_df = pd.read_csv(filepath, sep=sep, index_col=0)
    if abundance_df.shape[0] == 0 or abundance_df.shape[1] == 0:
        raise ValueError(f"Abundance file has {abundance_df.shape[0]} rows and {abundance_df.shape[1]} columns")

    if taxa_as_rows:
        abundance_df = abundance_df.T

    abundance_df.index = abundance_df.index.astype(str)
    abundance_df.columns = abundance_df.columns.astype(str)

    logger.info(f"Loaded abundance data: {abundance_df.shape[0]} samples, {abundance_df.shape[1]} taxa")
    return abundance_df


def load_metadata(filepath, sample_id_column='sampleID'):
    """
    Load metadata from a CSV file.

    Parameters:
    -----------
    filepath : str or Path
        Path to the metadata file
    sample_id_column : str
        Column name for sample IDs

    Returns:
    --------
    pandas.DataFrame
        Metadata DataFrame with sample IDs as index
    """
    metadata_df = pd.read_csv(filepath)

    if sample_id_column not in metadata_df.columns:
        raise ValueError(f"Sample ID column '{sample_id_column}' not found in metadata")

    metadata_df[sample_id_column] = metadata_df[sample_id_column].astype(str)
    metadata_df = metadata_df.set_index(sample_id_column)

    # Keep the first row of any duplicated sample ID
    if metadata_df.index.duplicated().any():
        logger.warning(f"Found {metadata_df.index.duplicated().sum()} duplicate sample IDs in metadata")
        metadata_df = metadata_df[~metadata_df.index.duplicated(keep='first')]

    return metadata_df


def normalize_proportions(abundance_df):
    """
    Convert counts to per-sample proportions.

    Parameters:
    -----------
    abundance_df : pandas.DataFrame
        Abundance DataFrame with samples as index, taxa as columns

    Returns:
    --------
    pandas.DataFrame
        Proportions, each row summing to 1
    """
    values = abundance_df.apply(pd.to_numeric, errors='raise').fillna(0).astype(float)

    if (values < 0).any().any():
        raise ValueError("Abundance table contains negative values")

    row_sums = values.sum(axis=1)
    empty = row_sums.index[row_sums <= 0]
    if len(empty) > 0:
        raise ValueError(f"Samples with zero total abundance cannot be normalized: {list(empty)}")

    return values.div(row_sums, axis=0)


def match_taxa(proportions, tip_labels):
    """Reorder taxa columns to follow the tree's tip order."""
    missing = [label for label in tip_labels if label not in proportions.columns]
    if missing:
        raise ValueError(f"Tree tips missing from the abundance table: {missing[:5]}")
    return proportions.loc[:, list(tip_labels)]


def _time_label_text(value):
    """Text form of a time label; integer-valued floats lose their '.0'."""
    if isinstance(value, (float, np.floating)) and float(value).is_integer():
        return str(int(value))
    return str(value)


def assign_time_points(time_values, time_labels):
    """
    Map raw time labels onto ``TimePoint`` values.

    Parameters:
    -----------
    time_values : pandas.Series
        Time label for each sample
    time_labels : sequence of two labels
        ``(first_label, second_label)``; compared as strings so that
        ``1``, ``1.0`` and ``"1"`` are the same label

    Returns:
    --------
    pandas.Series
        ``TimePoint`` for each sample
    """
    if len(time_labels) != 2:
        raise ValueError(f"Exactly two time labels are required, got {list(time_labels)}")

    first, second = (_time_label_text(label) for label in time_labels)
    if first == second:
        raise ValueError(f"The two time labels must differ, got '{first}' twice")

    mapping = {first: TimePoint.FIRST, second: TimePoint.SECOND}
    as_text = time_values.map(_time_label_text)

    unknown = sorted(set(as_text) - set(mapping))
    if unknown:
        raise ValueError(f"Unexpected time labels {unknown}; expected '{first}' or '{second}'")

    return as_text.map(mapping)


def split_time_points(sample_ids, metadata_df, subject_column, time_column, time_labels):
    """
    Pair each subject's samples across the two time points.

    Parameters:
    -----------
    sample_ids : sequence of str
        Samples present in the abundance table
    metadata_df : pandas.DataFrame
        Metadata DataFrame with samples as index
    subject_column : str
        Metadata variable for subject ID
    time_column : str
        Metadata variable for time point
    time_labels : sequence of two labels
        Raw labels of the first and second time point

    Returns:
    --------
    list
        Subject IDs, in order of first appearance at the first time point
    list
        Sample IDs at the first time point, aligned to subjects
    list
        Sample IDs at the second time point, aligned to subjects
    """
    for column in (subject_column, time_column):
        if column not in metadata_df.columns:
            raise ValueError(f"Column '{column}' not found in metadata")

    metadata_df = metadata_df.copy()
    metadata_df.index = metadata_df.index.astype(str)
    if metadata_df.index.duplicated().any():
        raise ValueError("Metadata contains duplicated sample IDs")

    sample_ids = [str(sample) for sample in sample_ids]
    missing = [sample for sample in sample_ids if sample not in metadata_df.index]
    if missing:
        raise ValueError(f"{len(missing)} samples have no metadata (e.g. {missing[:5]})")

    metadata_subset = metadata_df.loc[sample_ids]
    time_points = assign_time_points(metadata_subset[time_column], time_labels)
    subjects = metadata_subset[subject_column].astype(str)

    samples_by_time = {}
    for time_point in TimePoint:
        at_time = subjects[time_points == time_point]
        duplicated = at_time[at_time.duplicated()].unique()
        if len(duplicated) > 0:
            raise ValueError(f"Subjects with more than one sample at {time_point.name.lower()} "
                             f"time point: {list(duplicated)}")
        samples_by_time[time_point] = pd.Series(at_time.index, index=at_time.values)

    first = samples_by_time[TimePoint.FIRST]
    second = samples_by_time[TimePoint.SECOND]

    if set(first.index) != set(second.index):
        only_first = sorted(set(first.index) - set(second.index))
        only_second = sorted(set(second.index) - set(first.index))
        raise ValueError("Same set of subjects is not present at both time points! "
                         f"Only at first: {only_first}; only at second: {only_second}")

    subject_order = list(first.index)
    logger.info(f"Paired {len(subject_order)} subjects across time points "
                f"'{time_labels[0]}' and '{time_labels[1]}'")

    return subject_order, list(first.loc[subject_order]), list(second.loc[subject_order])


def simulate_longitudinal_data(n_taxa=5, n_subjects=10, seed=None):
    """
    Simulate a random rooted tree and a two-time-point proportion table.

    The tree is built by repeatedly joining two random lineages, with
    branch lengths drawn uniformly from (0, 1).

    Parameters:
    -----------
    n_taxa : int
        Number of taxa (tree tips)
    n_subjects : int
        Number of subjects, each sampled at time 1 and time 2
    seed : int, optional
        Seed for the random number generator

    Returns:
    --------
    skbio.TreeNode
        Rooted bifurcating tree with tips ``t1 .. t<n_taxa>``
    pandas.DataFrame
        Proportions with samples as index, taxa as columns
    pandas.DataFrame
        Metadata with ``sampleID`` as index and ``subjID``, ``time`` columns
    """
    if n_taxa < 2:
        raise ValueError("At least two taxa are needed to build a tree")

    rng = np.random.default_rng(seed)
    taxa = [f"t{i}" for i in range(1, n_taxa + 1)]

    lineages = [TreeNode(name=taxon, length=rng.uniform()) for taxon in taxa]
    while len(lineages) > 2:
        a, b = sorted(rng.choice(len(lineages), size=2, replace=False), reverse=True)
        left, right = lineages.pop(a), lineages.pop(b)
        lineages.append(TreeNode(length=rng.uniform(), children=[left, right]))
    tree = TreeNode(children=lineages)

    subjects = [f"Subj{i}" for i in range(1, n_subjects + 1)]
    sample_ids = [f"{subject}_Time{time}" for subject in subjects for time in (1, 2)]

    counts = pd.DataFrame(rng.uniform(0, 100, size=(len(sample_ids), n_taxa)),
                          index=sample_ids, columns=taxa)
    proportions = normalize_proportions(counts)

    metadata_df = pd.DataFrame({
        'sampleID': sample_ids,
        'subjID': [subject for subject in subjects for _ in (1, 2)],
        'time': [time for _ in subjects for time in (1, 2)]
    }).set_index('sampleID')

    return tree, proportions, metadata_df


def collapse_to_subjects(metadata_df, subject_column):
    """
    Reduce sample-level metadata to one row per subject.

    The first sample of each subject supplies the subject's values, which
    suits variables that are constant within a subject (group, treatment).
    """
    if subject_column not in metadata_df.columns:
        raise ValueError(f"Column '{subject_column}' not found in metadata")

    subject_df = metadata_df.copy()
    subject_df[subject_column] = subject_df[subject_column].astype(str)
    return subject_df.drop_duplicates(subset=subject_column, keep='first').set_index(subject_column)
