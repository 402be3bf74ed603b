"""Dispute Desk - payment dispute resolution between customers, merchants and admins."""
