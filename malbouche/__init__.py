"""Malbouche clock event scheduler."""
