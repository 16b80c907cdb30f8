"""
PeekDB Agent

Lightweight agent that bridges a local relational database to the
PeekDB hub through an outbound WebSocket connection.

This agent:
1. Initiates OUTBOUND connection to the hub (no inbound firewall rules)
2. Authenticates with a connection token
3. Executes queries received from the hub on the local database
4. Returns typed results through the same connection
"""

__version__ = "1.0.0"
__author__ = "PeekDB"
