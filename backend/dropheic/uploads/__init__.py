"""Upload intake for conversion requests.

Accepts at most 10 files per request, each ending in .heic or .heif
(case-insensitive) and no larger than 10MB by default. Accepted files are
staged as <epoch-ms>-<sanitized name> until the batch converter removes them.
"""
