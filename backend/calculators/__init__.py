"""
Deterministic calculation engine.

Pure Python math. No database, no HTTP.
Time entry parsing, payroll cash payouts and quote line pricing.
"""
