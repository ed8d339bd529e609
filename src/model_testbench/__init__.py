"""
model-testbench

Runs declarative test groups against language models and scores the results.
"""

__version__ = "0.3.0"
