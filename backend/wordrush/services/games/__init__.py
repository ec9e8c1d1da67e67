"""Rules of a WordRush game.

Routes, the round sweeper and CLI commands call into these modules.
Nothing here deals with requests or response codes beyond raising
``wordrush.errors`` exceptions.
"""
