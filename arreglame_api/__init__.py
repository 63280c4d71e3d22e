"""Arreglame Ya marketplace API."""
