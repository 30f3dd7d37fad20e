"""
Visualization functions for LUniFrac distance matrices.
"""

import logging

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
import seaborn as sns
from scipy.cluster.hierarchy import linkage
from scipy.spatial.distance import squareform
from skbio.stats.ordination import pcoa
from sklearn.manifold import MDS


logger = logging.getLogger(__name__)


def plot_ordination(distance_matrix, subject_metadata_df, variable, method='PCoA', title=None):
    """
    Create ordination plot from a subject-level LUniFrac distance matrix.

    Parameters:
    -----------
    distance_matrix : skbio.DistanceMatrix
        LUniFrac distance matrix for one metric
    subject_metadata_df : pandas.DataFrame
        Metadata DataFrame with subjects as index
    variable : str
        Metadata variable for coloring points
    method : str
        Ordination method ('PCoA' or 'NMDS')
    title : str, optional
        Plot title; defaults to the method and variable

    Returns:
    --------
    matplotlib.figure.Figure
        Ordination plot figure
    """
    if title is None:
        title = f'{method} of Longitudinal UniFrac ({variable})'

    try:
        if method.upper() == 'PCOA':
            pcoa_results = pcoa(distance_matrix)

            # Variance explained by the first two axes
            variance_explained = pcoa_results.proportion_explained
            x_label = f'PC1 ({variance_explained.iloc[0] * 100:.1f}% variance explained)'
            y_label = f'PC2 ({variance_explained.iloc[1] * 100:.1f}% variance explained)'

            coords = pcoa_results.samples[['PC1', 'PC2']].values
            stress = None

        elif method.upper() == 'NMDS':
            # Non-metric MDS on the precomputed distances
            mds = MDS(n_components=2, dissimilarity='precomputed', random_state=42,
                      metric=False, n_init=10, max_iter=500)
            coords = mds.fit_transform(distance_matrix.data)
            x_label, y_label = 'NMDS1', 'NMDS2'
            stress = getattr(mds, 'stress_', None)

        else:
            raise ValueError(f"Unknown ordination method: {method}. Use 'PCoA' or 'NMDS'.")

        plot_df = pd.DataFrame(coords, index=list(distance_matrix.ids), columns=['x', 'y'])
        subject_metadata_df = subject_metadata_df.copy()
        subject_metadata_df.index = subject_metadata_df.index.astype(str)
        plot_df[variable] = subject_metadata_df[variable].reindex(plot_df.index)

        fig, ax = plt.subplots(figsize=(10, 8))
        sns.scatterplot(data=plot_df, x='x', y='y', hue=variable, s=100, ax=ax)

        ax.set_xlabel(x_label)
        ax.set_ylabel(y_label)
        ax.set_title(title)

        if stress is not None:
            ax.text(0.02, 0.98, f"Stress: {stress:.3f}",
                    transform=ax.transAxes, va='top', ha='left',
                    bbox=dict(boxstyle='round', facecolor='white', alpha=0.8))

        ax.legend(bbox_to_anchor=(1.05, 1), loc='upper left')
        plt.tight_layout()

        return fig

    except Exception as e:
        logger.error(f"Error creating {method} plot: {str(e)}")

        # Create a simple error message plot
        fig, ax = plt.subplots(figsize=(10, 8))
        ax.text(0.5, 0.5, f"Error creating {method} plot:\n{str(e)}",
                ha='center', va='center', fontsize=12)
        ax.set_title(title)
        ax.axis('off')

        return fig


def plot_distance_heatmap(result, metric, cmap='YlGnBu', figsize=(10, 8), cluster=False):
    """
    Create a heatmap of the subject-by-subject distances for one metric.

    Parameters:
    -----------
    result : LUniFracResult
        Computed LUniFrac distances
    metric : str or metric descriptor
        Metric to plot, e.g. 'd_UW' or 'd_0.5'
    cmap : str
        Colormap for heatmap
    figsize : tuple
        Figure size
    cluster : bool
        Whether to order subjects by hierarchical clustering

    Returns:
    --------
    matplotlib.figure.Figure
        Heatmap figure
    """
    distance_df = result.to_frame(metric)
    label = metric if isinstance(metric, str) else metric.label

    if cluster and len(distance_df) > 2:
        # Cluster on the LUniFrac distances, not on distances between matrix rows
        Z = linkage(squareform(distance_df.values, checks=False), method='average')
        g = sns.clustermap(distance_df, row_linkage=Z, col_linkage=Z, cmap=cmap,
                           figsize=figsize, vmin=0, vmax=1, cbar_kws={"label": label})
        plt.setp(g.ax_heatmap.get_yticklabels(), rotation=0)
        g.fig.suptitle(f'Longitudinal UniFrac distances ({label})', y=1.02)
        return g.fig

    fig, ax = plt.subplots(figsize=figsize)
    mask = np.eye(len(distance_df), dtype=bool)
    sns.heatmap(distance_df, cmap=cmap, vmin=0, vmax=1, square=True, mask=mask,
                cbar_kws={"label": label}, ax=ax)
    ax.set_title(f'Longitudinal UniFrac distances ({label})')
    plt.tight_layout()

    return fig
