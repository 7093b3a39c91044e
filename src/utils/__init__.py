"""
Generic utilities shared across modules.

Includes clock abstractions, money primitives (amounts, wallets, exchange
rates), and loguru setup.
"""
