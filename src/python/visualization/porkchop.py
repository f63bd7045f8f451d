"""
===============================================================================
LOW-THRUST TRANSFER SEARCH - Campaign Plots
===============================================================================
Porkchop-style plots of the search results.

    plot_baseline_porkchop      -- filled contours of the phase-1 cost over
                                   departure epoch x time of flight, with
                                   the best revolution count per point
    plot_refinement_comparison  -- phase-2 high-order vs low-order cost

Invalid grid points (sentinel cost) are masked, never drawn as values.
===============================================================================
"""

import logging
import os
from typing import Optional, Sequence

import numpy as np
import matplotlib
matplotlib.use('Agg')  # Non-interactive backend for saving
import matplotlib.pyplot as plt

from core.data_structures import ResultRecord
from simulation.result_sink import records_to_frame

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# PlotStyle -- shared styling helpers
# ---------------------------------------------------------------------------

class PlotStyle:
    """Centralised styling and figure management for campaign plots."""

    @staticmethod
    def setup_style():
        """Set matplotlib rcParams for publication-quality figures."""
        plt.rcParams.update({
            'font.family': 'sans-serif',
            'font.size': 11,
            'axes.labelsize': 12,
            'axes.titlesize': 14,
            'axes.titleweight': 'bold',
            'legend.fontsize': 10,
            'figure.figsize': (10, 6),
            'figure.dpi': 100,
            'savefig.dpi': 300,
            'savefig.bbox': 'tight',
            'axes.grid': True,
            'axes.spines.top': False,
            'axes.spines.right': False,
            'grid.color': '#E0E0E0',
            'grid.linewidth': 0.5,
        })

    @staticmethod
    def save_figure(fig, filepath, dpi=300):
        """Save *fig* to *filepath*, creating directories as needed."""
        directory = os.path.dirname(filepath)
        if directory:
            os.makedirs(directory, exist_ok=True)
        fig.tight_layout()
        fig.savefig(filepath, dpi=dpi)
        plt.close(fig)
        logger.info(f"Saved figure: {filepath}")


def _cost_grid(records: Sequence[ResultRecord]):
    """Pivot records into (epochs, tofs, cost[tof, epoch], revs[tof, epoch])."""
    frame = records_to_frame(records)
    frame['best_cost'] = frame['best_cost'].replace(np.inf, np.nan)
    cost = frame.pivot_table(
        index='time_of_flight_days', columns='epoch_days',
        values='best_cost', dropna=False,
    )
    revs = frame.pivot_table(
        index='time_of_flight_days', columns='epoch_days',
        values='revolution_count', dropna=False,
    ).reindex(index=cost.index, columns=cost.columns)
    return (cost.columns.to_numpy(), cost.index.to_numpy(),
            cost.to_numpy(), revs.to_numpy())


def plot_baseline_porkchop(
    records: Sequence[ResultRecord],
    filepath: str,
    title: Optional[str] = None,
    cost_scale: float = 1e-3,
) -> str:
    """
    Filled contours of the baseline cost over departure epoch and TOF.

    Args:
        records:    Phase-1 result records.
        filepath:   Output image path.
        title:      Plot title.
        cost_scale: Factor applied to costs before plotting (m/s -> km/s).

    Returns:
        The written file path.
    """
    epochs, tofs, cost, revs = _cost_grid(records)

    PlotStyle.setup_style()
    fig, (ax_cost, ax_rev) = plt.subplots(1, 2, figsize=(16, 6))

    masked = np.ma.masked_invalid(cost * cost_scale)
    if len(epochs) >= 2 and len(tofs) >= 2 and masked.count() > 0:
        contour = ax_cost.contourf(epochs, tofs, masked, levels=20, cmap='viridis_r')
        fig.colorbar(contour, ax=ax_cost, label='Delta-V (km/s)')
    else:
        ee, tt = np.meshgrid(epochs, tofs)
        scatter = ax_cost.scatter(ee.ravel(), tt.ravel(), c=masked.ravel(), cmap='viridis_r')
        fig.colorbar(scatter, ax=ax_cost, label='Delta-V (km/s)')
    ax_cost.set_xlabel('Departure epoch (MJD2000)')
    ax_cost.set_ylabel('Time of flight (days)')
    ax_cost.set_title(title or 'Baseline grid search')

    mesh = ax_rev.pcolormesh(
        epochs, tofs, np.ma.masked_invalid(revs), shading='nearest', cmap='tab10',
    )
    fig.colorbar(mesh, ax=ax_rev, label='Best revolution count')
    ax_rev.set_xlabel('Departure epoch (MJD2000)')
    ax_rev.set_ylabel('Time of flight (days)')
    ax_rev.set_title('Revolution count of the best transfer')

    PlotStyle.save_figure(fig, filepath)
    return filepath


def plot_refinement_comparison(
    high_order: Sequence[ResultRecord],
    low_order: Sequence[ResultRecord],
    filepath: str,
    cost_scale: float = 1e-3,
) -> str:
    """
    Compare optimized (high-order) and low-order costs at the phase-2 points.

    One line per departure epoch, cost against time of flight.

    Returns:
        The written file path.
    """
    high = records_to_frame(high_order).replace(np.inf, np.nan)
    low = records_to_frame(low_order).replace(np.inf, np.nan)

    PlotStyle.setup_style()
    fig, ax = plt.subplots(1, 1, figsize=(10, 6))

    for epoch in sorted(high['epoch_days'].unique()):
        rows_high = high[high['epoch_days'] == epoch]
        rows_low = low[low['epoch_days'] == epoch]
        label = f'{epoch:.1f}'
        line, = ax.plot(rows_high['time_of_flight_days'],
                        rows_high['best_cost'] * cost_scale,
                        marker='o', label=f'high-order, t0={label}')
        ax.plot(rows_low['time_of_flight_days'],
                rows_low['best_cost'] * cost_scale,
                linestyle='--', marker='x', color=line.get_color(),
                label=f'low-order, t0={label}')

    ax.set_xlabel('Time of flight (days)')
    ax.set_ylabel('Delta-V (km/s)')
    ax.set_title('Refinement: optimized vs low-order shaping')
    if len(ax.get_lines()) <= 12:
        ax.legend(loc='best')

    PlotStyle.save_figure(fig, filepath)
    return filepath
