"""Momentum — household-management client core.

The state synchronization layer behind the Momentum mobile client: a request
gateway for the core API and the mobile BFF, a client-side cache of household
data, a realtime invalidation channel, and optimistic updates with rollback.
"""

__version__ = "0.1.0"
