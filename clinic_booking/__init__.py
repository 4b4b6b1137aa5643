"""Clinic appointment booking core."""
