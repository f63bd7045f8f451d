"""
===============================================================================
LOW-THRUST TRANSFER SEARCH - Guidance Module
===============================================================================
Exhaustive survey of the transfer design space.

Submodules:
    grid_search -- GridSearchExplorer over epoch x TOF x revolution count
===============================================================================
"""
