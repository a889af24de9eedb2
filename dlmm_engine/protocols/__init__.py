"""
Protocol integrations

- meteora: DLMM accounts, math, loader and pool directory
- jupiter: Price oracle and swap quote router
"""
