"""
===============================================================================
LOW-THRUST TRANSFER SEARCH - Optimization Module
===============================================================================
Population-based refinement of the free shaping parameters.

Submodules:
    population -- TransferObjective, GenerationBarrier, PopulationOptimizer
===============================================================================
"""
