"""Command line tools for docschema."""
