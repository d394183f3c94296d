"""Entry points for EVENTRELAY (command-line interface).

Entry points only talk to `eventrelay.bootstrap` and `eventrelay.config`;
they never reach into adapters or the service layer directly.
"""
