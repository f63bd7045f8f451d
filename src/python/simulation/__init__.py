"""
===============================================================================
LOW-THRUST TRANSFER SEARCH - Simulation Module
===============================================================================
Campaign orchestration, configuration, result files and the synthetic
cost surface used for smoke runs.

Submodules:
    campaign    -- CampaignConfig, CampaignOrchestrator, CampaignResults
    result_sink -- ResultSink and result-file helpers
    synthetic   -- SyntheticEphemeris, SyntheticEvaluatorFactory
===============================================================================
"""
