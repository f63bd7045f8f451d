"""
===============================================================================
LOW-THRUST TRANSFER SEARCH - Core Module
===============================================================================
Shared constants, value types, error taxonomy and evaluator interfaces.

Submodules:
    constants       -- campaign defaults, sentinels, unit conversions
    data_structures -- grid axes, grid points, candidates, result records
    exceptions      -- CampaignError hierarchy
    interfaces      -- EphemerisProvider, CostEvaluator, evaluate_cost
===============================================================================
"""
