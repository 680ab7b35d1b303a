"""
tenantctl - phased per-tenant cloud stack deployment.

Provisions an isolated application stack for one tenant, publishes its
container images and static assets, and tears the stack down again.
"""

__version__ = "0.4.0"
