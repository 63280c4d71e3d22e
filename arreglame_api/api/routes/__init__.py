"""
API route modules.

This package contains subrouters for:
- Auth: register, login, refresh, logout and current user
- Users: role switching and worker upgrade
- Workers: public profiles, location and availability
- Services: the service catalog
- Jobs: booking lifecycle, reviews and support tickets
- Audit: direct access to the photo audit
- Notifications: in-app notifications and push devices
- Wallet: balance and ledger lines

Routers are included from arreglame_api.api.main (under the /api/v1 prefix).
"""
