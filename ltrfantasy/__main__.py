"""Main entry point when executing ltrfantasy as a package.

This allows running the package using python -m ltrfantasy.
"""

from ltrfantasy.main import cli_entry_point

if __name__ == "__main__":
    cli_entry_point()
