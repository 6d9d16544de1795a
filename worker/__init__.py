"""AI Visibility Tester - worker package.

Artifact, correlation and report modules import without Redis; only
``worker.queue``, ``worker.redis`` and ``worker.main`` need a live RQ stack.
"""
