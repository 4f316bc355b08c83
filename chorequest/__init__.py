"""
ChoreQuest recurring quest engine.

Generates quest instances from recurring templates on timezone-aware daily
and weekly cycles, and expires unresolved instances once their cycle closes.
"""

__version__ = "0.4.0"
