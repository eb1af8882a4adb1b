"""
NUT (Network UPS Tools) integration.
"""
