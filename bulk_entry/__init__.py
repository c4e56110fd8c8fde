"""Bulk exam-result entry: grid state, validation, paste import and navigation."""
