"""Registry access: metadata queries and archive downloads."""
