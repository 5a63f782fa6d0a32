"""Plan output formats."""
