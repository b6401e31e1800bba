"""Business logic services.

Services hold rating resolution, caching policy, and external fetchers.
Routers and scripts stay thin and call into these modules.
"""
