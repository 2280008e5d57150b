"""SQLite persistence for draft jobs and the records they are computed from."""
