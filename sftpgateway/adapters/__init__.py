"""Storage adapters backing the virtual directories."""
