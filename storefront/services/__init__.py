# Services layer for catalog, cart and checkout logic
