"""
RPC subsystem.

Components:
- payloads.py: strict payload schemas and event types
- envelope.py: parsing of the {metadata, payload} envelope into typed operations
- dispatcher.py: guards, routing and error-to-response translation
"""
