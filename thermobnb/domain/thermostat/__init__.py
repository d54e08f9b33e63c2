"""Thermostat domain - schedule planning, live status and cold-room alerts

The router is imported by main directly; importing it here would create a
cycle with auth, which uses the repository.
"""
