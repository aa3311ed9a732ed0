"""Proctored, timed online exam rooms: server and candidate session client."""
