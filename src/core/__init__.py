"""Core domain package for mentionwatch.

Core contains normalization, matching, throttling and routing logic without
any Telegram or HTTP-specific code, keeping the triage pipeline portable.
"""
