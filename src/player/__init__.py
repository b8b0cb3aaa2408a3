"""
Signage player client.
Contains the pairing state machine, the API client for the signage
server, the pairing controller and the heartbeat reporter.
"""
