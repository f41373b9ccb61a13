"""Network adapters — downloads and GitHub releases."""
