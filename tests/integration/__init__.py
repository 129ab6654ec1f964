"""
Zeebe Containers Integration Test Suite

Runs against a real Docker daemon; skipped when none is reachable.
"""
