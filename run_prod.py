#!/usr/bin/env python3
"""
Production runner for the Group Meetup API
- Serves the API and the /map page with waitress
- Loads .env for provider endpoints, keys and limits

Usage:
  python3 run_prod.py

Environment:
  PORT=8000 (default)        # Port to bind
  HOST=0.0.0.0 (default)     # Host interface
  MEETUP_PROVIDER=osm        # osm (Nominatim/Overpass/OpenRouteService) | google
  ORS_API_KEY=...            # Required for travel times with the osm provider
  GOOGLE_MAPS_API_KEY=...    # Required with the google provider
  MEETUP_RATE_LIMIT=8        # Max concurrent provider calls
"""

import os
from pathlib import Path

from dotenv import load_dotenv
from waitress import serve
from werkzeug.middleware.proxy_fix import ProxyFix

from meetup.app import create_app

PROJECT_ROOT = Path(__file__).resolve().parent

# Load env from .env if present
load_dotenv(dotenv_path=PROJECT_ROOT / '.env')

app = create_app()

# Respect reverse proxy headers (X-Forwarded-*) when behind a proxy/HTTPS terminator
if os.getenv('TRUST_PROXY_HEADERS', '1') not in ('0', 'false', 'False', 'no', 'off'):
    # Trust a single proxy hop by default; tune via env
    x_for = int(os.getenv('PROXY_FIX_X_FOR', '1'))
    x_proto = int(os.getenv('PROXY_FIX_X_PROTO', '1'))
    x_host = int(os.getenv('PROXY_FIX_X_HOST', '1'))
    x_prefix = int(os.getenv('PROXY_FIX_X_PREFIX', '1'))
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=x_for, x_proto=x_proto, x_host=x_host, x_prefix=x_prefix)


def main():
    host = os.getenv('HOST', '0.0.0.0')
    try:
        port = int(os.getenv('PORT', '8000'))
    except ValueError:
        port = 8000

    settings = app.extensions['meetup']['settings']
    if not settings.has_routing_key:
        print("\n" + "="*60)
        print(f"Warning: no routing API key configured for provider '{settings.provider}'.")
        print("Every route will be treated as unreachable; ranking falls back to input order.")
        print("Set ORS_API_KEY or GOOGLE_MAPS_API_KEY in your environment or .env file.")
        print("="*60 + "\n")

    print(f"\n🚀 Starting Group Meetup API (prod) on http://{host}:{port}")
    print(" - API:  /api/*")
    print(" - Map:  /map")
    serve(app, host=host, port=port, threads=int(os.getenv('WSGI_THREADS', '8')))


if __name__ == '__main__':
    main()
