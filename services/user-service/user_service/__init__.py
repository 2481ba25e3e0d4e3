"""User account service."""
