"""
Kernel layer.

Integer-only building blocks that mirror the ledger program's arithmetic
bit-for-bit. Higher layers (`dlmm_quote.core`) compose them into quotes.
"""
