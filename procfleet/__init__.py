"""
procfleet - run the processes of a Procfile as one supervised group.

Launches every replica of every Procfile entry, multiplexes their output,
and tears the whole group down together on ctrl-c or on any unplanned exit.
"""

__version__ = "0.1.0"
__author__ = "Philip Orange <git@philiporange.com>"
