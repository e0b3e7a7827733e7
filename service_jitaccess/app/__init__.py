"""
JIT Access core.

Discovers eligible and activated entitlements from IAM policies and
models activation requests and their approval tokens.
"""
