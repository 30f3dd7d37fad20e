import numpy as np
import pandas as pd
import pytest

from lunifrac_tools import (
    TimePoint,
    collapse_to_subjects,
    load_abundance_table,
    load_metadata,
    normalize_proportions,
    simulate_longitudinal_data,
    split_time_points,
)
from lunifrac_tools.lunifrac_utils import assign_time_points, match_taxa


@pytest.fixture
def metadata_df():
    return pd.DataFrame(
        {'subjID': ['B', 'A', 'A', 'B', 'C', 'C'],
         'time': ['pre', 'pre', 'post', 'post', 'post', 'pre'],
         'group': ['x', 'y', 'y', 'x', 'x', 'x']},
        index=['b1', 'a1', 'a2', 'b2', 'c2', 'c1'],
    )


def test_load_abundance_table_transposes(tmp_path):
    abundance_file = tmp_path / 'abundance.csv'
    abundance_file.write_text("taxon,s1,s2\nA,1,0\nB,3,5\n")

    abundance_df = load_abundance_table(abundance_file)
    assert list(abundance_df.index) == ['s1', 's2']
    assert list(abundance_df.columns) == ['A', 'B']
    assert abundance_df.loc['s2', 'B'] == 5


def test_load_abundance_table_tsv_samples_as_rows(tmp_path):
    abundance_file = tmp_path / 'abundance.tsv'
    abundance_file.write_text("sample\tA\tB\ns1\t1\t0\n")

    abundance_df = load_abundance_table(abundance_file, taxa_as_rows=False)
    assert list(abundance_df.index) == ['s1']
    assert list(abundance_df.columns) == ['A', 'B']


def test_load_metadata_drops_duplicates(tmp_path, caplog):
    metadata_file = tmp_path / 'metadata.csv'
    metadata_file.write_text("sampleID,subjID,time\n1,S1,1\n2,S1,2\n2,S2,2\n")

    metadata_df = load_metadata(metadata_file)
    assert list(metadata_df.index) == ['1', '2']
    assert metadata_df.loc['2', 'subjID'] == 'S1'
    assert "duplicate sample IDs" in caplog.text


def test_load_metadata_missing_id_column(tmp_path):
    metadata_file = tmp_path / 'metadata.csv'
    metadata_file.write_text("sample,subjID,time\ns1,S1,1\n")
    with pytest.raises(ValueError, match="sampleID"):
        load_metadata(metadata_file)


def test_normalize_proportions():
    counts = pd.DataFrame([[1, 3], [0, 2]], index=['s1', 's2'], columns=['A', 'B'])
    proportions = normalize_proportions(counts)

    np.testing.assert_allclose(proportions.values, [[0.25, 0.75], [0.0, 1.0]])
    np.testing.assert_allclose(proportions.sum(axis=1), 1.0)


def test_normalize_rejects_empty_sample():
    counts = pd.DataFrame([[1, 3], [0, 0]], index=['s1', 's2'], columns=['A', 'B'])
    with pytest.raises(ValueError, match="s2"):
        normalize_proportions(counts)


def test_normalize_rejects_negative():
    counts = pd.DataFrame([[1, -3]], index=['s1'], columns=['A', 'B'])
    with pytest.raises(ValueError, match="negative"):
        normalize_proportions(counts)


def test_match_taxa_reorders():
    proportions = pd.DataFrame([[0.1, 0.9]], index=['s1'], columns=['B', 'A'])
    assert list(match_taxa(proportions, ('A', 'B')).columns) == ['A', 'B']


def test_assign_time_points_compares_as_text():
    time_points = assign_time_points(pd.Series([1, 2, 1]), (1, '2'))
    assert list(time_points) == [TimePoint.FIRST, TimePoint.SECOND, TimePoint.FIRST]


def test_assign_time_points_float_column_matches_integer_labels():
    # A time column with a missing value elsewhere is read as 1.0, 2.0
    time_points = assign_time_points(pd.Series([1.0, 2.0, 1.0]), (1, 2))
    assert list(time_points) == [TimePoint.FIRST, TimePoint.SECOND, TimePoint.FIRST]

    time_points = assign_time_points(pd.Series([1, 2]), (1.0, 2.0))
    assert list(time_points) == [TimePoint.FIRST, TimePoint.SECOND]


def test_assign_time_points_keeps_fractional_labels():
    time_points = assign_time_points(pd.Series([0.5, 1.5]), (0.5, 1.5))
    assert list(time_points) == [TimePoint.FIRST, TimePoint.SECOND]

    with pytest.raises(ValueError, match="Unexpected time labels"):
        assign_time_points(pd.Series([1.5, 2.0]), (1, 2))


def test_split_time_points_float_time_column(metadata_df):
    metadata_df = metadata_df.assign(time=[1.0, 1.0, 2.0, 2.0, 2.0, 1.0])
    subjects, first, second = split_time_points(
        ['b1', 'a1', 'a2', 'b2', 'c2', 'c1'], metadata_df, 'subjID', 'time', (1, 2)
    )
    assert subjects == ['B', 'A', 'C']
    assert second == ['b2', 'a2', 'c2']


@pytest.mark.parametrize("labels", [(1,), (1, 1), (1, 2, 3), (1, 1.0)])
def test_assign_time_points_needs_two_labels(labels):
    with pytest.raises(ValueError):
        assign_time_points(pd.Series([1, 2]), labels)


def test_assign_time_points_unknown_label():
    with pytest.raises(ValueError, match="Unexpected time labels"):
        assign_time_points(pd.Series([1, 2, 3]), (1, 2))


def test_split_time_points(metadata_df):
    subjects, first, second = split_time_points(
        ['b1', 'a1', 'a2', 'b2', 'c2', 'c1'], metadata_df, 'subjID', 'time', ('pre', 'post')
    )
    assert subjects == ['B', 'A', 'C']
    assert first == ['b1', 'a1', 'c1']
    assert second == ['b2', 'a2', 'c2']


def test_split_time_points_ignores_extra_metadata(metadata_df):
    subjects, first, second = split_time_points(
        ['a1', 'a2'], metadata_df, 'subjID', 'time', ('pre', 'post')
    )
    assert subjects == ['A']
    assert first == ['a1']
    assert second == ['a2']


def test_split_time_points_unequal_subjects(metadata_df):
    with pytest.raises(ValueError, match="Same set of subjects"):
        split_time_points(['b1', 'a1', 'a2', 'b2', 'c2'], metadata_df, 'subjID', 'time', ('pre', 'post'))


def test_split_time_points_duplicate_subject(metadata_df):
    metadata_df.loc['c1', 'subjID'] = 'A'
    metadata_df.loc['c1', 'time'] = 'post'
    with pytest.raises(ValueError, match="more than one sample"):
        split_time_points(list(metadata_df.index), metadata_df, 'subjID', 'time', ('pre', 'post'))


def test_split_time_points_missing_metadata(metadata_df):
    with pytest.raises(ValueError, match="no metadata"):
        split_time_points(['a1', 'zz'], metadata_df, 'subjID', 'time', ('pre', 'post'))


def test_split_time_points_missing_column(metadata_df):
    with pytest.raises(ValueError, match="visit"):
        split_time_points(['a1', 'a2'], metadata_df, 'subjID', 'visit', ('pre', 'post'))


def test_collapse_to_subjects(metadata_df):
    subject_df = collapse_to_subjects(metadata_df, 'subjID')
    assert list(subject_df.index) == ['B', 'A', 'C']
    assert subject_df.loc['A', 'group'] == 'y'


def test_simulate_longitudinal_data():
    tree, proportions, metadata_df = simulate_longitudinal_data(n_taxa=8, n_subjects=4, seed=1)

    assert sorted(tip.name for tip in tree.tips()) == sorted(proportions.columns)
    assert len(tree.children) == 2
    assert proportions.shape == (8, 8)
    np.testing.assert_allclose(proportions.sum(axis=1), 1.0)
    assert list(metadata_df.columns) == ['subjID', 'time']
    assert list(metadata_df.index[:2]) == ['Subj1_Time1', 'Subj1_Time2']


def test_simulate_is_reproducible():
    _, first, _ = simulate_longitudinal_data(n_taxa=5, n_subjects=3, seed=11)
    _, second, _ = simulate_longitudinal_data(n_taxa=5, n_subjects=3, seed=11)
    pd.testing.assert_frame_equal(first, second)
