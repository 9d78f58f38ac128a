"""In-memory stand-ins for the Stripe client and the catalog store."""
