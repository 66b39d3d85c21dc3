"""
Command-line entrypoints.

- serve.py: `imon-service`, runs the HTTP service
- client.py: `imon`, the interactive client talking to the service
- local_cache.py: flat files holding the client's key and last-known task
"""
