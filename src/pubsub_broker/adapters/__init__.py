"""Storage adapters: in-memory and MongoDB."""
