"""Game domain services: placement rules, tokens, deck, rounds and turns.

Routes in ``yearline.api`` load and lock the game, call one command from
here, then commit and broadcast. Nothing in this package commits or emits.
"""
