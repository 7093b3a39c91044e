"""
Policy interface and baseline policies.

A Policy turns each market Event plus the current Account snapshot into a
list of order instructions for the paper broker.
"""
