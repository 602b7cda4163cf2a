"""Core domain package for bountyscope.

Core contains reconciliation and scheduling logic without any HTTP or
storage-specific code, keeping the change detection portable and testable.
"""
