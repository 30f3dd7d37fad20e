import numpy as np
import pytest

from lunifrac_tools import build_branch_table, is_rooted, load_tree, prepare_tree


def test_load_tree_keeps_underscores():
    tree = load_tree("((taxon_a:1,taxon_b:1):1,taxon_c:2);")
    assert sorted(tip.name for tip in tree.tips()) == ['taxon_a', 'taxon_b', 'taxon_c']


def test_load_tree_from_file(tmp_path):
    tree_file = tmp_path / 'tree.nwk'
    tree_file.write_text("((A:1,B:2):3,C:4);\n")
    tree = load_tree(tree_file)
    assert sorted(tip.name for tip in tree.tips()) == ['A', 'B', 'C']


@pytest.mark.parametrize("newick, rooted", [
    ("((A:1,B:1):1,C:1);", True),
    ("(A:1,B:1,C:1);", False),
    ("(A:1,B:1,C:1):0;", True),
])
def test_is_rooted(newick, rooted):
    assert is_rooted(load_tree(newick)) is rooted


def test_prepare_tree_rejects_unrooted():
    with pytest.raises(ValueError, match="Rooted"):
        prepare_tree("(A:1,B:1,C:1);", ['A', 'B', 'C'])


def test_prepare_tree_rejects_unknown_taxa():
    with pytest.raises(ValueError, match="not in the tree"):
        prepare_tree("((A:1,B:1):1,C:1);", ['A', 'B', 'Z'])


def test_prepare_tree_prunes_extra_tips(caplog):
    tree = prepare_tree("((A:1,B:2):3,(C:1,D:1):1);", ['A', 'B', 'C'])
    assert "pruning 1 tips" in caplog.text

    table = build_branch_table(tree)
    assert sorted(table.tip_labels) == ['A', 'B', 'C']
    lengths = dict(zip(table.tip_labels, table.lengths))
    # C absorbs the branch of its collapsed parent
    assert lengths['C'] == pytest.approx(2.0)


def test_build_branch_table(small_tree):
    table = build_branch_table(small_tree)

    assert table.tip_labels == ('A', 'B', 'C')
    assert table.n_tips == 3
    assert table.n_branches == 4
    assert table.root == 4
    assert table.parent[table.root] == -1

    # A and B share the internal node, which hangs off the root with C
    assert table.parent[0] == table.parent[1] == 3
    assert table.parent[2] == table.parent[3] == 4
    np.testing.assert_allclose(table.branch_lengths, [1, 2, 4, 3])
    assert table.edges == [(3, 0), (3, 1), (4, 2), (4, 3)]


def test_children_precede_parents(simulated):
    tree, _, _ = simulated
    table = build_branch_table(tree)
    for parent, child in table.edges:
        assert child < parent


def test_missing_branch_length():
    with pytest.raises(ValueError, match="no length"):
        build_branch_table(load_tree("((A,B):1,C:1);"))


def test_negative_branch_length():
    with pytest.raises(ValueError, match="negative"):
        build_branch_table(load_tree("((A:-1,B:1):1,C:1);"))
