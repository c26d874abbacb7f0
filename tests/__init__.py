"""
Test suite for influxsync.

- Unit tests for parsing, diffing, planning and the HTTP client
- End-to-end tests running the whole pipeline against a fake server
"""
