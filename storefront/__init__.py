"""
Telegram Mini-App storefront backend: catalog normalization, cart pricing and checkout.
"""
