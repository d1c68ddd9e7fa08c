"""hostsync - entity-collection synchronization for the host management screen.

Keeps an in-memory mirror of the control plane's host, resource pool and
service collections fresh by polling, and merges a separately polled
host status feed onto it at read time.
"""
