"""
Market data contracts and the feed adapter.

Defines assets, price observations and Events, validates price frames, and
turns CSVs or DataFrames into the ordered Event stream the broker consumes.
"""
