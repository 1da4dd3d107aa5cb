# Outbound adapters: Supabase catalog, order backend, cart storage
