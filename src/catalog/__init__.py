"""Package catalog: metadata model, registry payload parsing and the in-memory store."""
