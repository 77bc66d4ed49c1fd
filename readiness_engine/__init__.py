"""
Circus Readiness Engine

Tracks learners' mastery of circus figures step by step and recommends the
next figure to learn from the mastery of its prerequisite figures.
"""

__version__ = "1.0.0"
