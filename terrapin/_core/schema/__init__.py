"""
The contract between the engines and the resources: schemas and resource data.

The engines know nothing about Kubernetes or Google Cloud. The providers know
nothing about the configuration & state documents or the plans. They meet
here: the providers declare the schemas & functions, the engines feed them
with :class:`ResourceData` and collect the new state from it.
"""
