#!/usr/bin/env python3
"""
Calculate longitudinal UniFrac distances between subjects.

This script:
1. Loads the abundance table, phylogenetic tree and sample metadata
2. Pairs each subject's samples across the two time points
3. Calculates generalized LUniFrac distances for each alpha and the
   unweighted distance
4. Saves one distance matrix per metric, optional kernel matrices and
   a summary table
5. Creates heatmaps and ordination plots of the distances

Usage:
    python scripts/01_calculate_lunifrac.py [--config CONFIG_FILE]
"""

import argparse
import logging
import sys
from pathlib import Path

import yaml
import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt

from lunifrac_tools import (
    lunifrac,
    load_abundance_table,
    load_metadata,
    load_tree,
    collapse_to_subjects,
    kernels_from_result,
    summarize_distances
)
from lunifrac_tools.lunifrac_viz import plot_distance_heatmap, plot_ordination


project_root = Path(__file__).resolve().parents[1]


def setup_logger(log_file=None, log_level=logging.INFO):
    """Set up logger for the script."""
    logger = logging.getLogger('lunifrac_tools')
    logger.setLevel(log_level)

    # Create formatter
    formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    # Create console handler
    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    # Create file handler if log_file specified
    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def parse_args():
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description='Calculate longitudinal UniFrac distances')
    parser.add_argument('--config', type=str, default='config/analysis_parameters.yml',
                        help='Path to configuration file')
    parser.add_argument('--abundance-file', type=str, default=None,
                        help='Path to abundance table (override config)')
    parser.add_argument('--tree-file', type=str, default=None,
                        help='Path to rooted Newick tree (override config)')
    parser.add_argument('--metadata-file', type=str, default=None,
                        help='Path to metadata file (override config)')
    parser.add_argument('--alpha', type=float, nargs='+', default=None,
                        help='Alpha values of the generalized metrics (override config)')
    parser.add_argument('--output-dir', type=str, default=None,
                        help='Directory to save analysis results (override config)')
    parser.add_argument('--log-file', type=str, default=None,
                        help='Optional log file')
    parser.add_argument('--log-level', type=str, default='INFO',
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help='Logging level')
    return parser.parse_args()


def resolve_path(path):
    """Resolve a path relative to the project root."""
    path = Path(path)
    return path if path.is_absolute() else project_root / path


def main():
    """Main function to calculate longitudinal UniFrac distances."""
    args = parse_args()

    logger = setup_logger(log_file=args.log_file, log_level=getattr(logging, args.log_level))
    logger.info("Starting longitudinal UniFrac analysis")

    # Load configuration
    try:
        with open(resolve_path(args.config), 'r') as f:
            config = yaml.safe_load(f)
        logger.info(f"Loaded configuration from {args.config}")
    except (OSError, yaml.YAMLError) as e:
        logger.error(f"Error loading configuration: {str(e)}")
        sys.exit(1)

    data_config = config['data']
    meta_config = config['metadata']

    abundance_file = resolve_path(args.abundance_file or data_config['abundance_file'])
    tree_file = resolve_path(args.tree_file or data_config['tree_file'])
    metadata_file = resolve_path(args.metadata_file or meta_config['filename'])
    alpha = args.alpha if args.alpha is not None else config['lunifrac']['alpha']

    output_dir = resolve_path(args.output_dir or config['output']['directory'])
    tables_dir = output_dir / 'tables'
    figures_dir = output_dir / 'figures'
    tables_dir.mkdir(exist_ok=True, parents=True)

    for path in (abundance_file, tree_file, metadata_file):
        if not path.exists():
            logger.error(f"Input file not found at {path}")
            sys.exit(1)

    try:
        abundance_df = load_abundance_table(abundance_file, taxa_as_rows=data_config.get('taxa_as_rows', True))
        metadata_df = load_metadata(metadata_file, meta_config['sample_id_column'])
        tree = load_tree(tree_file)

        result = lunifrac(
            abundance_df,
            tree,
            metadata_df,
            time_labels=meta_config['time_labels'],
            alpha=alpha,
            subject_column=meta_config['subject_column'],
            time_column=meta_config['time_column']
        )
    except ValueError as e:
        logger.error(f"LUniFrac calculation failed: {str(e)}")
        sys.exit(1)

    logger.info(f"Calculated {len(result)} distance matrices for {len(result.subjects)} subjects")

    # Save distance matrices
    for metric in result.metrics:
        distance_file = tables_dir / f"lunifrac_{metric.label}.csv"
        result.to_frame(metric).to_csv(distance_file)
        logger.info(f"{metric.label} distances saved to {distance_file}")

    if config['output'].get('save_kernels', False):
        for label, kernel_df in kernels_from_result(result).items():
            kernel_file = tables_dir / f"lunifrac_kernel_{label}.csv"
            kernel_df.to_csv(kernel_file)
            logger.info(f"{label} kernel saved to {kernel_file}")

    summary_file = tables_dir / 'lunifrac_summary.csv'
    summarize_distances(result).to_csv(summary_file)
    logger.info(f"Distance summary saved to {summary_file}")

    # Create figures
    viz_config = config.get('visualization', {})
    if viz_config.get('enabled', False):
        figures_dir.mkdir(exist_ok=True, parents=True)
        dpi = viz_config.get('figure_dpi', 300)

        for metric in result.metrics:
            fig = plot_distance_heatmap(result, metric)
            heatmap_file = figures_dir / f"lunifrac_heatmap_{metric.label}.png"
            fig.savefig(heatmap_file, dpi=dpi, bbox_inches='tight')
            plt.close(fig)
            logger.info(f"Heatmap saved to {heatmap_file}")

        subject_df = collapse_to_subjects(metadata_df, meta_config['subject_column'])
        method = viz_config.get('ordination_method', 'PCoA')
        for var in meta_config.get('group_variables') or []:
            if var not in subject_df.columns:
                logger.warning(f"Variable '{var}' not found in metadata")
                continue
            for metric in result.metrics:
                fig = plot_ordination(result.to_distance_matrix(metric), subject_df, var, method=method,
                                      title=f'{method} of Longitudinal UniFrac {metric.label} ({var})')
                ordination_file = figures_dir / f"lunifrac_{method.lower()}_{metric.label}_{var}.png"
                fig.savefig(ordination_file, dpi=dpi, bbox_inches='tight')
                plt.close(fig)
                logger.info(f"Ordination plot saved to {ordination_file}")

    logger.info("Longitudinal UniFrac analysis complete")


if __name__ == "__main__":
    main()
