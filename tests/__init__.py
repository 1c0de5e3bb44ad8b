"""Test package for openapi-rpc-worker."""
