"""Configurations for the Slicer Project."""
