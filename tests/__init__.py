"""
Tests Package - Unit and Integration Tests

Test structure:
- tests/conftest.py - shared fixtures (settings factory, fake portal transport)
- tests/test_*.py - one module per harvester component

The flight portal is simulated with httpx.MockTransport; nothing touches the
network, Redis, GCS or SFTP.
"""
