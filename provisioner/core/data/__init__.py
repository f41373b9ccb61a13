"""Static data tables. Pure data, no logic."""
