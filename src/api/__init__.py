"""HTTP control surface for mentionwatch.

A thin FastAPI layer: every endpoint reads or mutates the shared
TriageService and never holds pipeline state of its own.
"""
