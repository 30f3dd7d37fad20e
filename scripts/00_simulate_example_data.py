#!/usr/bin/env python3
"""
Simulate an example longitudinal dataset for LUniFrac.

This script:
1. Builds a random rooted phylogenetic tree
2. Draws random taxon counts for every subject at two time points
3. Writes the tree (Newick), abundance table (taxa as rows) and metadata

Usage:
    python scripts/00_simulate_example_data.py [--config CONFIG_FILE]
"""

import argparse
import logging
import sys
from pathlib import Path

import yaml

from lunifrac_tools import simulate_longitudinal_data


project_root = Path(__file__).resolve().parents[1]


def setup_logger(log_level=logging.INFO):
    """Set up logger for the script."""
    logger = logging.getLogger('lunifrac_simulation')
    logger.setLevel(log_level)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
    logger.addHandler(console_handler)

    return logger


def parse_args():
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description='Simulate example data for longitudinal UniFrac')
    parser.add_argument('--config', type=str, default='config/analysis_parameters.yml',
                        help='Path to configuration file')
    parser.add_argument('--n-taxa', type=int, default=None,
                        help='Number of taxa (override config)')
    parser.add_argument('--n-subjects', type=int, default=None,
                        help='Number of subjects (override config)')
    parser.add_argument('--seed', type=int, default=None,
                        help='Random seed (override config)')
    parser.add_argument('--output-dir', type=str, default=None,
                        help='Directory to write the example files (override config)')
    return parser.parse_args()


def main():
    """Main function to write the simulated dataset."""
    args = parse_args()
    logger = setup_logger()

    # Load configuration
    config_path = project_root / args.config
    with open(config_path, 'r') as f:
        config = yaml.safe_load(f)
    sim_config = config.get('simulation', {})

    n_taxa = args.n_taxa or sim_config.get('n_taxa', 5)
    n_subjects = args.n_subjects or sim_config.get('n_subjects', 10)
    seed = args.seed if args.seed is not None else sim_config.get('seed')
    output_dir = project_root / (args.output_dir or sim_config.get('output_dir', 'data/example'))
    output_dir.mkdir(exist_ok=True, parents=True)

    logger.info(f"Simulating {n_subjects} subjects and {n_taxa} taxa (seed={seed})")
    try:
        tree, proportions, metadata_df = simulate_longitudinal_data(n_taxa, n_subjects, seed)
    except ValueError as e:
        logger.error(f"Simulation failed: {str(e)}")
        sys.exit(1)

    tree_file = output_dir / 'tree.nwk'
    tree.write(str(tree_file), format='newick')
    logger.info(f"Tree saved to {tree_file}")

    abundance_file = output_dir / 'abundance.csv'
    proportions.T.to_csv(abundance_file)
    logger.info(f"Abundance table saved to {abundance_file}")

    metadata_file = output_dir / 'metadata.csv'
    metadata_df.to_csv(metadata_file)
    logger.info(f"Metadata saved to {metadata_file}")


if __name__ == "__main__":
    main()
