"""
Typed async client for the storefront backend endpoints used at checkout.
"""
