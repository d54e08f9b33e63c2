"""Outbound clients: Netatmo, booking proxy and OAuth token storage"""
