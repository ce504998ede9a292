"""
All the structures and pure functions to work with the raw K8s objects.

Grouped by the type of the fields and the purpose of the manipulation:
bodies & references for addressing, finalizers & markers for the fields
owned by the replicator itself.

All the functions are purely data-manipulative and computational.
No external calls or any i/o activities are done here.
"""
