"""Emergency broadcast and public display application.

This package contains the alert registry, the display feed, the display
heartbeat tracker and the REST/WebSocket surface that exposes them to
staff dashboards and public screens.
"""
