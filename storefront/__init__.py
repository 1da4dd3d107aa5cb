"""Storefront: catalog, cart and checkout service."""
