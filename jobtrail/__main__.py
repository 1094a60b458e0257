"""Main entry point when executing jobtrail as a package.

This allows running the package using python -m jobtrail.
"""

from jobtrail.main import cli_entry_point

if __name__ == "__main__":
    cli_entry_point()
