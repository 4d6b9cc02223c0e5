"""core/ -- Kernel: configuration, error taxonomy, and the storage handle.

Layer rule: core/ imports only stdlib and third-party libraries. It never
imports from auth/.
"""
