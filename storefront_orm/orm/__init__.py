"""
This orm module contains the entity registry, the query builder and the relationship resolver
of Storefront-ORM, together with the storefront models built on them.
It also contains the repositories, Unit of Work patterns, and database connection utilities.
"""
