"""Draft job queue: enqueue, claim, execute and retry.

The queue is a single SQLite table polled by one loop per worker process.
Mutual exclusion comes only from conditional updates on the lock columns,
so any number of worker processes can share one database file.
"""
