"""
Load orchestration: strategy selection, row mapping, file pipelines and the job surface.
"""
