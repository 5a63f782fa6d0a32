"""Environment context assembly."""
