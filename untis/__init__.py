"""
WebUntis source package.

This package contains:
- Raw record schemas validated at the ingestion boundary
- The async JSON-RPC and REST client
"""
