"""Authentication and authorization.

Learn: One authentication path — username-or-email + password →
signed JWT bearer token. The token resolves to a CurrentPrincipal
on each request, and every task query is scoped by that principal's id.
"""
