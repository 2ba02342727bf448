"""Domain layer: server states and run outcomes.

This layer depends only on stdlib and cloudsvc.errors.
It must never import from api, runtime, config, or cli.
"""
