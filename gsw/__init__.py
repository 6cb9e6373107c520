"""Gateway Service Watcher (GSW).

Keeps the routing configuration of a Kong API gateway in sync with the
service containers running on a Docker host:
 - discovers containers that opt in through labels
 - registers running, not-unhealthy containers as upstream targets
 - removes stopped/unhealthy containers from their upstream
 - sweeps managed targets whose container was deleted outright
"""
