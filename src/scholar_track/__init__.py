"""Scholar Track Pulse package.

Feature modules (attendance, reports) keep a thin Flask controller layer on top
of service and repository layers.
"""
