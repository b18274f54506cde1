"""
General-purpose helpers not related to the resource providers themselves.

Helpers do not depend on anything else in the package: neither on the schema
contract, nor on the engines, nor on the providers. They could be extracted
as reusable snippets if needed.
"""
