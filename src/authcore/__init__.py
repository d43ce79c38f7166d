"""authcore — authentication and authorization core.

Issues and validates signed session tokens, runs the email-verification
flow that activates new accounts, and gates every request on a bearer
token plus a role requirement.
"""

__version__ = "0.1.0"
