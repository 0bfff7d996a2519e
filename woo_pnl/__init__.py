"""
WooCommerce order mirror and profit and loss engine.
"""

__version__ = "1.0.0"
