"""Catalog sync engine: keeps the local product catalog and Stripe in step."""
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()
