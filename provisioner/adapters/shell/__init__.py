"""Shell adapters — commands, files, background launches."""
