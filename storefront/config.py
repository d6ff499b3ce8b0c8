"""Environment configuration for the cart core."""
import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Supabase (catalog: products, product_variants)
SUPABASE_URL = os.environ.get("SUPABASE_URL", "")
SUPABASE_SERVICE_ROLE_KEY = os.environ.get("SUPABASE_SERVICE_ROLE_KEY", "")

# Upstash Redis (authenticated carts) - standard env var names per docs
UPSTASH_REDIS_REST_URL = os.environ.get("UPSTASH_REDIS_REST_URL", "")
UPSTASH_REDIS_REST_TOKEN = os.environ.get("UPSTASH_REDIS_REST_TOKEN", "")

# Flat tax applied to the subtotal; no jurisdiction rules
TAX_RATE_PERCENT = os.environ.get("STOREFRONT_TAX_RATE_PERCENT", "8.25")

# Device-local cart file for anonymous visitors
DEVICE_CART_PATH = Path(
    os.environ.get("STOREFRONT_DEVICE_CART_PATH", str(Path.home() / ".storefront" / "cart.json"))
)
