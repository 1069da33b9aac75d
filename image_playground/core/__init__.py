"""
Core modules for Image Playground.

This package contains the cost estimator, usage extraction, request
parameter normalization, and prompt enhancement templates.
"""
