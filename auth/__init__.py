"""auth/ -- User accounts, password hashing, sessions, and login.

Layer rule: auth/ imports only stdlib, third-party libraries, and core/.
core/ never imports from auth/.
"""
