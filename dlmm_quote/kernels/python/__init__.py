"""
Production Python kernels.

These modules are designed to be:
- deterministic (integer-only),
- width-checked where the ledger program uses fixed-size integers,
- small surface-area (pure functions, typed results).
"""
