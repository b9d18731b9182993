"""TaskTrack — multi-tenant task tracking service.

Every user owns a private task list. Identity comes from stateless
signed bearer tokens; every task query is scoped to the requesting
owner.
"""

__version__ = "0.1.0"
