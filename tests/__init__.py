"""Unit tests for the term resolver.

Tests use pytest with asyncio support. Provider SDKs and HTTP calls are replaced with in-process
doubles via monkeypatch; no test reaches the network.
"""
