"""
Lead store access and pipeline-stage bookkeeping.
"""
