import logging

import matplotlib
matplotlib.use('Agg')

import numpy as np
import pandas as pd
import pytest

from lunifrac_tools import BranchTable, load_tree, simulate_longitudinal_data


def pytest_configure(config):
    """Set up logging before tests run."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


@pytest.fixture
def star_table():
    """Tips A, B, C hanging directly off the root, each on a branch of length 1."""
    return BranchTable(
        tip_labels=('A', 'B', 'C'),
        parent=np.array([3, 3, 3, -1]),
        lengths=np.array([1.0, 1.0, 1.0, 0.0]),
    )


@pytest.fixture
def small_tree():
    return load_tree("((A:1,B:2):3,C:4);")


@pytest.fixture
def small_dataset():
    """Two subjects on ((A:1,B:2):3,C:4); both change between time points."""
    abundance_df = pd.DataFrame(
        [[0.5, 0.5, 0.0],
         [0.25, 0.25, 0.5],
         [0.5, 0.0, 0.5],
         [0.5, 0.5, 0.0]],
        index=['s1_t1', 's1_t2', 's2_t1', 's2_t2'],
        columns=['A', 'B', 'C'],
    )
    metadata_df = pd.DataFrame(
        {'subjID': ['S1', 'S1', 'S2', 'S2'], 'time': [1, 2, 1, 2]},
        index=['s1_t1', 's1_t2', 's2_t1', 's2_t2'],
    )
    return abundance_df, metadata_df


@pytest.fixture
def simulated():
    return simulate_longitudinal_data(n_taxa=12, n_subjects=6, seed=7)
