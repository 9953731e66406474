"""
dlmm_quote: pricing and quoting core for a discretized liquidity-bin AMM.
"""
