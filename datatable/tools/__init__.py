"""Command-line tools for datatable."""
