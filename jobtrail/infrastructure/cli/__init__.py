"""Console presentation for the jobtrail CLI."""
