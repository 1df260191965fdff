"""
Client-side data layer for the Robinhood Army service.

Repositories cache the signed-in user's collections, the change feed
listener keeps them in sync with writes from other sessions, and the view
builders derive leaderboards, rosters and search results from the cache.
"""
