"""
===============================================================================
LOW-THRUST TRANSFER SEARCH - Visualization Module
===============================================================================
Porkchop and refinement plots (matplotlib, Agg backend).

Submodules:
    porkchop -- PlotStyle, plot_baseline_porkchop, plot_refinement_comparison
===============================================================================
"""
