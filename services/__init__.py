"""Matchmaking and session-lifecycle services.

Each public coroutine is one operation: it runs inside the caller's database
session, commits exactly once on success, and publishes change notifications
after the commit.
"""
