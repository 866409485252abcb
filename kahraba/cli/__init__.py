"""Kahraba command-line interface."""
