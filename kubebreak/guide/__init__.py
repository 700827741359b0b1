"""Packaged troubleshooting guide."""
