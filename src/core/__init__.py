"""Core domain package for contestwatch.

Core contains the notification window, dispatch, and scheduling logic without
any Telegram, HTTP, or storage-specific code, keeping the business logic
portable.
"""
