"""Command line interface for svcadm."""
