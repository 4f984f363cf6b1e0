"""
Core modules for AI Resume Builder.

This package contains the generation pipeline: quota enforcement,
profile aggregation, document assembly, usage metering and the
orchestrator that sequences them.
"""
