"""Task model, transition rules, SQLite store, lifecycle manager and deadline scanners."""
