"""Core domain package for torrentsieve.

Core contains extraction, rule compilation, matching, and version
deduplication without any network or storage-specific code, keeping the
filtering logic portable and testable.
"""
