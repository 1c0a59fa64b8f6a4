"""Integration tests for the claim workflow service.

These tests exercise several components together:
- test_concurrency.py: racing transitions on the same claim
- test_workflow.py: full maker-checker flows through the REST API and client
"""
