#!/usr/bin/env python3
"""
Visualize benchmark results from benchmark_results.json
Creates line charts of execution time and speedup per backend and worker count.
"""

import json
import sys
from pathlib import Path

import matplotlib
import matplotlib.pyplot as plt
import numpy as np

# Define colors for backends
COLORS = {
    'sequential': '#2E86AB',
    'threads': '#A23B72',
    'processes': '#F18F01',
    'distributed': '#87CEEB',
}


def load_results(json_path='benchmark_results.json'):
    """Load benchmark results from JSON file."""
    with open(json_path, 'r') as f:
        data = json.load(f)
    return data


def organize_data(data):
    """Group results by backend: {backend: [(n_jobs, seconds, speedup), ...]}."""
    results = {}
    for entry in data['results']:
        results.setdefault(entry['backend'], []).append(
            (entry['n_jobs'], entry['seconds'], entry['speedup']))
    for runs in results.values():
        runs.sort()
    return results


def plot_benchmark_results(data, output_path='benchmark_plot.png', show=True):
    """Execution time (left) and speedup vs sequential (right)."""
    results = organize_data(data)
    meta = data.get('metadata', {})

    fig, (ax_time, ax_speed) = plt.subplots(1, 2, figsize=(16, 6))
    fig.suptitle(f"Convolution Benchmark - {meta.get('width')}x{meta.get('height')} "
                 f"{meta.get('format', '')} / {meta.get('filter', '')}",
                 fontsize=16, fontweight='bold')

    seq = results.get('sequential')
    seq_time = seq[0][1] if seq else None
    max_jobs = max(n for runs in results.values() for n, _, _ in runs)

    for backend, runs in results.items():
        if backend == 'sequential':
            continue
        n_jobs = np.array([r[0] for r in runs])
        seconds = np.array([r[1] for r in runs])
        speedups = np.array([r[2] for r in runs])
        color = COLORS.get(backend, '#999999')
        ax_time.plot(n_jobs, seconds * 1000, marker='o', label=backend, color=color)
        ax_speed.plot(n_jobs, speedups, marker='o', label=backend, color=color)

    if seq_time is not None:
        ax_time.axhline(y=seq_time * 1000, color='red', linestyle='--', linewidth=1, alpha=0.7,
                        label='sequential')
    ideal = np.arange(1, max_jobs + 1)
    ax_speed.plot(ideal, ideal, color='gray', linestyle=':', linewidth=1, label='ideal')
    ax_speed.axhline(y=1.0, color='red', linestyle='--', linewidth=1, alpha=0.7)

    ax_time.set_xlabel('n_jobs', fontsize=11, fontweight='bold')
    ax_time.set_ylabel('Time (ms)', fontsize=11, fontweight='bold')
    ax_time.set_title('Execution Time', fontsize=12, fontweight='bold')
    ax_time.set_yscale('log')  # Use log scale for better visibility of differences

    ax_speed.set_xlabel('n_jobs', fontsize=11, fontweight='bold')
    ax_speed.set_ylabel('Speedup vs sequential', fontsize=11, fontweight='bold')
    ax_speed.set_title('Speedup', fontsize=12, fontweight='bold')

    for ax in (ax_time, ax_speed):
        ax.legend(fontsize=8, loc='best')
        ax.grid(True, alpha=0.3)

    plt.savefig(output_path, dpi=150, bbox_inches='tight')
    print(f"✓ Plot saved to: {output_path}")
    if show:
        plt.show()
    plt.close(fig)
    return output_path


def print_summary(data):
    """Print summary statistics."""
    results = organize_data(data)

    print("\n" + "="*80)
    print("BENCHMARK SUMMARY")
    print("="*80)

    for backend, runs in results.items():
        print(f"\n{backend}")
        print("-" * 80)
        for n_jobs, seconds, speedup in runs:
            efficiency = speedup / n_jobs if n_jobs else 0
            print(f"  n_jobs={n_jobs:<4} {seconds * 1000:10.2f} ms  {speedup:6.2f}x  ({efficiency:.0%} efficiency)")


def main():
    json_path = Path(sys.argv[1] if len(sys.argv) > 1 else 'benchmark_results.json')
    if not json_path.exists():
        print(f"Error: {json_path} not found!")
        print("Run 'python3 benchmark.py' first to generate results.")
        return 1

    data = load_results(json_path)

    # Print summary
    print_summary(data)

    # Create visualization
    print("\nGenerating plot...")
    plot_benchmark_results(data, show=matplotlib.get_backend().lower() != 'agg')

    print("\n✓ Visualization complete!")
    return 0


if __name__ == '__main__':
    sys.exit(main())
