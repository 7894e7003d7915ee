"""
JSON:API resources over SQLAlchemy models with RQL filtering.

    from jsonapi_rql.api import create_app
    from jsonapi_rql.jsonapi import ResourceDefinition

    app = create_app([ResourceDefinition(type="posts", model=Post)])
"""

__version__ = "0.1.0"
