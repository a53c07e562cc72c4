"""Adaptation module: inner-loop gradient descent and fast few-shot adaptation.

Exports:
    InnerLoopAdapter: Tracked/untracked inner loop shared by all strategies
    FastAdapter: Reduced-budget adaptation for online use
"""
from .inner_loop import InnerLoopAdapter
from .fast_adaptation import FastAdapter, DEFAULT_FAST_STEPS

__all__ = ['InnerLoopAdapter', 'FastAdapter', 'DEFAULT_FAST_STEPS']
