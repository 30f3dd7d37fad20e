"""
Phylogenetic tree handling for longitudinal UniFrac.

Trees are read and pruned with scikit-bio, then flattened into a
``BranchTable``: an immutable arena of integer node ids with explicit parent
pointers, numbered so that every node comes after all of its descendants.
"""

import io
import logging
import os
from dataclasses import dataclass

import numpy as np
from skbio import TreeNode


logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class BranchTable:
    """
    Rooted tree stored as parallel arrays indexed by node id.

    Tips have ids ``0 .. n_tips - 1`` in the order of ``tip_labels``;
    internal nodes follow in post-order, so the root has the largest id.
    Every non-root node owns exactly one branch, the edge to its parent.
    """
    tip_labels: tuple
    parent: np.ndarray
    lengths: np.ndarray

    @property
    def n_tips(self):
        return len(self.tip_labels)

    @property
    def n_nodes(self):
        return len(self.parent)

    @property
    def n_branches(self):
        return self.n_nodes - 1

    @property
    def root(self):
        return self.n_nodes - 1

    @property
    def edges(self):
        """(parent id, child id) for every branch, children in id order."""
        return [(int(self.parent[child]), child) for child in range(self.n_branches)]

    @property
    def branch_lengths(self):
        """Branch lengths aligned to ``edges``."""
        return self.lengths[:self.n_branches]


def load_tree(source):
    """
    Load a phylogenetic tree.

    Parameters:
    -----------
    source : skbio.TreeNode, str or Path
        An existing tree, a path to a Newick file, or a Newick string

    Returns:
    --------
    skbio.TreeNode
        Parsed tree (underscores in tip names are kept as-is)
    """
    if isinstance(source, TreeNode):
        return source

    source = str(source)
    if os.path.exists(source):
        logger.info(f"Reading tree from {source}")
        with open(source, 'r') as f:
            return TreeNode.read(f, format='newick', convert_underscores=False)

    return TreeNode.read(io.StringIO(source), format='newick', convert_underscores=False)


def is_rooted(tree):
    """
    Check whether a tree should be treated as rooted.

    A Newick tree is rooted when its root is bifurcating (or has a single
    child), or when it carries an explicit root edge such as ``(...):0;``.
    """
    return len(tree.children) <= 2 or tree.length is not None


def prepare_tree(tree, taxa):
    """
    Validate a tree against the taxa of an abundance table.

    Parameters:
    -----------
    tree : skbio.TreeNode, str or Path
        Rooted phylogenetic tree (or anything ``load_tree`` accepts)
    taxa : iterable of str
        Taxon names from the abundance table

    Returns:
    --------
    skbio.TreeNode
        The tree, sheared to the taxa present in the table
    """
    tree = load_tree(tree)

    if not is_rooted(tree):
        raise ValueError("Rooted phylogenetic tree required!")

    tip_names = [tip.name for tip in tree.tips()]
    if any(name is None for name in tip_names):
        raise ValueError("All tips of the tree must be labelled")
    if len(set(tip_names)) != len(tip_names):
        raise ValueError("Tip labels of the tree must be unique")

    taxa = [str(taxon) for taxon in taxa]
    unknown = sorted(set(taxa) - set(tip_names))
    if unknown:
        raise ValueError(
            f"The abundance table contains {len(unknown)} taxa not in the tree "
            f"(e.g. {unknown[:5]}). Taxon names in the table and the tree should match."
        )

    absent = set(tip_names) - set(taxa)
    if absent:
        logger.warning(f"The tree has more taxa than the abundance table; "
                       f"pruning {len(absent)} tips")
        tree = tree.shear(taxa)

    return tree


def build_branch_table(tree):
    """
    Flatten a tree into a ``BranchTable`` with one post-order traversal.

    Parameters:
    -----------
    tree : skbio.TreeNode
        Rooted tree in which every non-root node has a non-negative length

    Returns:
    --------
    BranchTable
    """
    nodes = list(tree.postorder(include_self=True))
    tips = [node for node in nodes if node.is_tip()]
    internal = [node for node in nodes if not node.is_tip()]

    if len(tips) < 2:
        raise ValueError(f"Tree must have at least two tips, found {len(tips)}")

    # Tips first, then internal nodes in post-order (root last)
    ordered = tips + internal
    node_ids = {id(node): index for index, node in enumerate(ordered)}

    parent = np.full(len(ordered), -1, dtype=np.intp)
    lengths = np.zeros(len(ordered), dtype=float)

    for index, node in enumerate(ordered):
        if node is tree:
            continue
        if node.length is None:
            raise ValueError(f"Branch above node '{node.name}' has no length")
        if node.length < 0:
            raise ValueError(f"Branch above node '{node.name}' has negative length {node.length}")
        parent[index] = node_ids[id(node.parent)]
        lengths[index] = node.length

    logger.debug(f"Built branch table: {len(tips)} tips, {len(ordered) - 1} branches")

    return BranchTable(
        tip_labels=tuple(tip.name for tip in tips),
        parent=parent,
        lengths=lengths,
    )
