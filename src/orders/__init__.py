"""
Order instructions, time-in-force policies, and the order lifecycle state machine.

Orders are plain data; matching lives in src.execution.
"""
